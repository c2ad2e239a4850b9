"""Loaders for labeled evaluation datasets.

Accepted formats:
- ``.jsonl``: one case object per non-blank line
- anything else: a JSON array of cases, or an object with a ``cases`` array

Loading is all-or-nothing: the first malformed row aborts the load with a
DatasetError naming the row and the offending field.

Author: Hay Hoffman
"""

import json
import logging
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from codecontext.exceptions import DatasetError
from models.evaluation import AutoTuneCase, BenchmarkCase

logger = logging.getLogger(__name__)

__all__ = ["load_auto_tune_dataset", "load_benchmark_dataset", "parse_cases"]

CaseT = TypeVar("CaseT", bound=BaseModel)


def _read_rows(path: Path) -> list[tuple[int, object]]:
    """Raw (row number, entry) pairs from a JSON or JSONL file.

    Raises:
        DatasetError: If the file is not valid JSON/JSONL or has the wrong shape
    """
    content = path.read_text(encoding="utf-8")

    if path.suffix.lower() == ".jsonl":
        rows = []
        for line_no, line in enumerate(content.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                rows.append((line_no, json.loads(line)))
            except json.JSONDecodeError as e:
                raise DatasetError(f"Invalid JSON on line {line_no}: {e.msg}", line=line_no) from e
        return rows

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise DatasetError(f"Invalid JSON in {path.name}: {e.msg} (line {e.lineno})", line=e.lineno) from e

    if isinstance(parsed, dict) and isinstance(parsed.get("cases"), list):
        parsed = parsed["cases"]
    if not isinstance(parsed, list):
        raise DatasetError(f"{path.name} must contain a JSON array or an object with a 'cases' array")

    return list(enumerate(parsed, start=1))


def parse_cases(rows: list[tuple[int, object]], model: type[CaseT]) -> list[CaseT]:
    """Validate raw rows into case models.

    Raises:
        DatasetError: On the first row that is not an object or fails validation
    """
    cases: list[CaseT] = []
    for line_no, raw in rows:
        if not isinstance(raw, dict):
            raise DatasetError(f"Row {line_no} must be a JSON object", line=line_no)
        try:
            cases.append(model.model_validate(raw))
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"])
            raise DatasetError(
                f"Row {line_no}: field '{field}' {error['msg'].lower()}",
                line=line_no,
                field=field,
            ) from e
    return cases


def load_auto_tune_dataset(path: Path) -> list[AutoTuneCase]:
    """Load replay cases (stored vector and lexical rankings + relevance labels).

    Raises:
        FileNotFoundError: If the dataset file does not exist
        DatasetError: If any row is malformed
    """
    path = Path(path)
    cases = parse_cases(_read_rows(path), AutoTuneCase)
    logger.info(f"Loaded {len(cases)} auto-tune cases from {path}")
    return cases


def load_benchmark_dataset(path: Path) -> list[BenchmarkCase]:
    """Load benchmark cases (one ranking + relevance labels per query).

    Raises:
        FileNotFoundError: If the dataset file does not exist
        DatasetError: If any row is malformed
    """
    path = Path(path)
    cases = parse_cases(_read_rows(path), BenchmarkCase)
    logger.info(f"Loaded {len(cases)} benchmark cases from {path}")
    return cases
