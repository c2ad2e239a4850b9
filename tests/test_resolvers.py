"""Tests for the per-language import resolvers.

Author: Hay Hoffman
"""

import pytest

from codecontext.retrieval.resolvers import RESOLVERS, common_prefix_length, resolvers_for
from codecontext.retrieval.resolvers.base import collect_suffix_candidates, pick_closest, resolve_relative
from codecontext.retrieval.resolvers.csharp import CSHARP_RESOLVER
from codecontext.retrieval.resolvers.dart import DART_RESOLVER
from codecontext.retrieval.resolvers.go import GO_RESOLVER
from codecontext.retrieval.resolvers.javascript import JAVASCRIPT_RESOLVER
from codecontext.retrieval.resolvers.jvm import JAVA_RESOLVER, KOTLIN_RESOLVER
from codecontext.retrieval.resolvers.php import PHP_RESOLVER
from codecontext.retrieval.resolvers.python import PYTHON_RESOLVER
from codecontext.retrieval.resolvers.ruby import RUBY_RESOLVER
from codecontext.retrieval.resolvers.swift import SWIFT_RESOLVER


# =============================================================================
# Shared policy
# =============================================================================


class TestResolutionPolicy:
    """Tests for the shared path helpers."""

    @pytest.mark.parametrize(
        "left,right,expected",
        [
            ("src/auth/a.py", "src/auth/b.py", 2),
            ("src/auth/a.py", "src/core/a.py", 1),
            ("src/auth/a.py", "lib/auth/a.py", 0),
            ("a.py", "a.py", 1),
        ],
    )
    def test_common_prefix_length_counts_segments(self, left, right, expected):
        assert common_prefix_length(left, right) == expected
        assert common_prefix_length(right, left) == expected

    def test_common_prefix_length_ignores_partial_segments(self):
        assert common_prefix_length("src/authz/a.py", "src/auth/a.py") == 1

    def test_pick_closest_prefers_longest_prefix(self):
        candidates = ["lib/util.py", "src/app/util.py"]

        assert pick_closest(candidates, "src/app/main.py") == "src/app/util.py"

    def test_pick_closest_tie_goes_to_first_sorted(self):
        assert pick_closest(["b/x.py", "a/x.py"], "c/y.py") == "a/x.py"

    def test_pick_closest_empty(self):
        assert pick_closest([], "a.py") is None

    def test_suffix_match_respects_path_boundary(self):
        files = {"src/myutils.py", "src/utils.py"}

        assert collect_suffix_candidates("utils", files, (".py",)) == ["src/utils.py"]

    def test_leaf_fallback(self):
        files = {"lib2/helpers.py"}

        assert collect_suffix_candidates("company/lib/helpers", files, (".py",)) == ["lib2/helpers.py"]

    def test_resolve_relative_cannot_escape_root(self):
        assert resolve_relative("../../x", "a/b.py") is None
        assert resolve_relative("../x", "a/b/c.py") == "a/x"

    def test_resolvers_for_dispatches_by_extension(self):
        assert resolvers_for("web/app.tsx") == [JAVASCRIPT_RESOLVER]
        assert resolvers_for("README.md") == []

    def test_registry_covers_all_languages(self):
        languages = {resolver.language for resolver in RESOLVERS}

        assert languages == {
            "python", "javascript", "java", "kotlin", "csharp",
            "php", "ruby", "swift", "dart", "go",
        }


# =============================================================================
# Languages
# =============================================================================


class TestPythonResolver:

    def test_extract_in_source_order(self):
        content = "import os\nfrom .utils import helper\nfrom ..core import base\nfrom pkg.mod import X\n"

        assert PYTHON_RESOLVER.extract(content) == ["os", ".utils", "..core", "pkg.mod"]

    def test_extract_bare_relative_import_names(self):
        assert PYTHON_RESOLVER.extract("from . import a, b\n") == [".a", ".b"]

    def test_extract_falls_back_to_regex_on_syntax_error(self):
        content = "import os\nprint 'legacy'\nfrom pkg import thing\n"

        assert PYTHON_RESOLVER.extract(content) == ["os", "pkg"]

    def test_resolve_relative_module(self):
        files = {"pkg/sub/utils.py", "pkg/core/__init__.py"}

        assert PYTHON_RESOLVER.resolve(".utils", "pkg/sub/a.py", files) == "pkg/sub/utils.py"
        assert PYTHON_RESOLVER.resolve("..core", "pkg/sub/a.py", files) == "pkg/core/__init__.py"

    def test_resolve_absolute_prefers_closest(self):
        files = {"src/pkg/mod.py", "other/pkg/mod.py"}

        assert PYTHON_RESOLVER.resolve("pkg.mod", "src/app/main.py", files) == "src/pkg/mod.py"

    def test_external_module_is_unresolved(self):
        assert PYTHON_RESOLVER.resolve("os", "src/app/main.py", {"src/app/main.py"}) is None


class TestJavaScriptResolver:

    def test_extract_all_forms(self):
        content = (
            "import { a } from './a';\n"
            'import b from "../lib/b.js";\n'
            "const c = require('./c');\n"
            "import 'polyfill';\n"
            "export * from './d';\n"
        )

        assert JAVASCRIPT_RESOLVER.extract(content) == ["./a", "../lib/b.js", "./c", "polyfill", "./d"]

    def test_resolve_extensions_and_index_files(self):
        files = {"src/app/a.ts", "src/lib/b.ts", "src/app/c/index.js"}
        current = "src/app/index.ts"

        assert JAVASCRIPT_RESOLVER.resolve("./a", current, files) == "src/app/a.ts"
        assert JAVASCRIPT_RESOLVER.resolve("../lib/b.js", current, files) == "src/lib/b.ts"
        assert JAVASCRIPT_RESOLVER.resolve("./c", current, files) == "src/app/c/index.js"

    def test_bare_specifier_is_external(self):
        assert JAVASCRIPT_RESOLVER.resolve("react", "src/a.ts", {"src/react.ts"}) is None


class TestJvmResolvers:

    @pytest.fixture
    def java_files(self) -> set[str]:
        return {
            "src/main/java/com/acme/auth/TokenService.java",
            "src/main/java/com/acme/util/Strings.java",
            "src/main/java/com/acme/model/User.java",
        }

    def test_extract_java_imports(self):
        content = (
            "import com.acme.auth.TokenService;\n"
            "import static com.acme.util.Strings.isBlank;\n"
            "import com.acme.model.*;\n"
        )

        assert JAVA_RESOLVER.extract(content) == [
            "com.acme.auth.TokenService",
            "static:com.acme.util.Strings.isBlank",
            "com.acme.model.*",
        ]

    def test_resolve_java_forms(self, java_files):
        current = "src/main/java/com/acme/App.java"

        assert JAVA_RESOLVER.resolve("com.acme.auth.TokenService", current, java_files) == (
            "src/main/java/com/acme/auth/TokenService.java"
        )
        assert JAVA_RESOLVER.resolve("static:com.acme.util.Strings.isBlank", current, java_files) == (
            "src/main/java/com/acme/util/Strings.java"
        )
        assert JAVA_RESOLVER.resolve("com.acme.model.*", current, java_files) == (
            "src/main/java/com/acme/model/User.java"
        )

    def test_resolve_kotlin_type_import(self):
        files = {"app/src/main/kotlin/com/acme/Repo.kt"}

        assert KOTLIN_RESOLVER.extract("import com.acme.Repo as R\n") == ["com.acme.Repo"]
        assert KOTLIN_RESOLVER.resolve("com.acme.Repo", "app/src/main/kotlin/Main.kt", files) == (
            "app/src/main/kotlin/com/acme/Repo.kt"
        )


class TestCSharpResolver:

    def test_extract_using_forms(self):
        content = (
            "using System.Text;\n"
            "using Alias = Acme.Models.User;\n"
            "global using global::Acme.Core.Clock;\n"
        )

        assert CSHARP_RESOLVER.extract(content) == [
            "System.Text",
            "Acme.Models.User",
            "global::Acme.Core.Clock",
        ]

    def test_resolve_strips_alias_qualifier(self):
        files = {"src/Acme/Core/Clock.cs"}

        assert CSHARP_RESOLVER.resolve("global::Acme.Core.Clock", "src/Program.cs", files) == "src/Acme/Core/Clock.cs"


class TestPhpResolver:

    def test_extract_expands_groups_and_aliases(self):
        content = "use App\\Models\\User;\nuse App\\Http\\{Request, Response as Resp};\n"

        assert PHP_RESOLVER.extract(content) == [
            "App\\Models\\User",
            "App\\Http\\Request",
            "App\\Http\\Response",
        ]

    def test_resolve_namespace_path(self):
        files = {"src/App/Models/User.php"}

        assert PHP_RESOLVER.resolve("App\\Models\\User", "src/index.php", files) == "src/App/Models/User.php"


class TestRubyResolver:

    def test_extract_and_resolve(self):
        content = "require 'json'\nrequire_relative '../lib/helper'\nautoload :Parser, 'acme/parser'\n"
        files = {"app/lib/helper.rb", "lib/acme/parser.rb"}
        current = "app/models/user.rb"

        imports = RUBY_RESOLVER.extract(content)

        assert imports == ["require:json", "require_relative:../lib/helper", "autoload:acme/parser"]
        assert [RUBY_RESOLVER.resolve(i, current, files) for i in imports] == [
            None,
            "app/lib/helper.rb",
            "lib/acme/parser.rb",
        ]


class TestSwiftResolver:

    def test_extract_and_resolve(self):
        content = "import Foundation\n@testable import Networking\nimport struct Models.User\n"
        files = {"Sources/Models/User.swift", "Sources/Networking/Client.swift"}
        current = "Sources/App/main.swift"

        imports = SWIFT_RESOLVER.extract(content)

        assert imports == ["Foundation", "Networking", "Models.User"]
        assert [SWIFT_RESOLVER.resolve(i, current, files) for i in imports] == [
            None,
            "Sources/Networking/Client.swift",
            "Sources/Models/User.swift",
        ]


class TestDartResolver:

    def test_only_relative_directives(self):
        content = (
            "import 'package:flutter/material.dart';\n"
            "import '../utils/format.dart';\n"
            "import './widgets/button';\n"
        )

        assert DART_RESOLVER.extract(content) == ["../utils/format.dart", "./widgets/button"]

    def test_resolve_adds_extension(self):
        files = {"lib/utils/format.dart", "lib/screens/widgets/button.dart"}
        current = "lib/screens/home.dart"

        assert DART_RESOLVER.resolve("../utils/format.dart", current, files) == "lib/utils/format.dart"
        assert DART_RESOLVER.resolve("./widgets/button", current, files) == "lib/screens/widgets/button.dart"


class TestGoResolver:

    def test_extract_single_and_block(self):
        content = (
            'import "fmt"\n'
            "import (\n"
            '    "github.com/acme/app/internal/store"\n'
            '    cfg "github.com/acme/app/config"\n'
            ")\n"
        )

        assert GO_RESOLVER.extract(content) == [
            "fmt",
            "github.com/acme/app/internal/store",
            "github.com/acme/app/config",
        ]

    def test_resolve_package_directory_skips_tests(self):
        files = {
            "internal/store/store.go",
            "internal/store/store_test.go",
            "internal/store/cache.go",
            "config/config.go",
        }

        assert GO_RESOLVER.resolve("github.com/acme/app/internal/store", "cmd/main.go", files) == (
            "internal/store/cache.go"
        )
        assert GO_RESOLVER.resolve("fmt", "cmd/main.go", files) is None
