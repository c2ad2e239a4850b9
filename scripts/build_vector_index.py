"""Build the FAISS vector index from chunk records.

This script:
1. Loads chunk records from the chunks JSON file
2. Embeds each chunk's vector_text (falls back to display_code) with
   sentence-transformers, normalized for cosine similarity
3. Writes an inner-product FAISS index and the position -> chunk_id mapping
   consumed by FAISSVectorChannel

Usage:
    python scripts/build_vector_index.py [--chunks PATH] [--index-dir DIR]

Output:
    - {index_dir}/chunks_faiss.index
    - {index_dir}/chunks_id_mapping.json

Author: Hay Hoffman
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import faiss
import numpy as np
from sentence_transformers import SentenceTransformer

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from codecontext.retrieval.channels import ID_MAPPING_FILE_NAME, INDEX_FILE_NAME
from codecontext.retrieval.chunk_store import JSONChunkStore
from models.chunk import ChunkRecord
from settings import CHUNKS_FILE, EMBEDDING_BATCH_SIZE, EMBEDDING_MODEL, INDEX_DIR

logger = logging.getLogger(__name__)


def generate_embeddings(
    records: list[ChunkRecord],
    model: SentenceTransformer,
    batch_size: int = EMBEDDING_BATCH_SIZE,
) -> np.ndarray:
    """Embed chunk texts.

    Returns:
        Numpy array of normalized embeddings (n_chunks, embedding_dim)
    """
    texts = [record.vector_text or record.display_code for record in records]

    logger.info(f"Generating embeddings for {len(texts)} chunks...")
    embeddings = model.encode(
        texts,
        batch_size=batch_size,
        show_progress_bar=True,
        convert_to_numpy=True,
        normalize_embeddings=True,
    )

    logger.info(f"Generated embeddings with shape: {embeddings.shape}")
    return embeddings


def save_index_and_mapping(index: faiss.Index, records: list[ChunkRecord], output_dir: Path) -> None:
    """Write the FAISS index and its position -> chunk_id mapping."""
    output_dir.mkdir(parents=True, exist_ok=True)

    index_path = output_dir / INDEX_FILE_NAME
    faiss.write_index(index, str(index_path))
    logger.info(f"Saved FAISS index to {index_path}")

    id_mapping = {i: record.chunk_id for i, record in enumerate(records)}
    mapping_path = output_dir / ID_MAPPING_FILE_NAME
    with open(mapping_path, "w", encoding="utf-8") as f:
        json.dump(id_mapping, f, indent=2)
    logger.info(f"Saved ID mapping to {mapping_path}")


def build_vector_index(chunks_file: Path, index_dir: Path, model_name: str = EMBEDDING_MODEL) -> int:
    """Build and save the vector index.

    Returns:
        0 on success, 1 on failure
    """
    try:
        store = JSONChunkStore.from_file(chunks_file, repo_root=chunks_file.parent)
        records = list(store.chunk_cache.values())
        if not records:
            logger.error(f"No chunks found in {chunks_file}")
            return 1

        logger.info(f"Loading embedding model: {model_name}")
        model = SentenceTransformer(model_name)

        embeddings = generate_embeddings(records, model)

        # Inner product over normalized vectors = cosine similarity
        index = faiss.IndexFlatIP(embeddings.shape[1])
        index.add(embeddings.astype("float32"))
        logger.info(f"Built flat IP index with {index.ntotal} vectors, dim={index.d}")

        save_index_and_mapping(index, records, index_dir)
        return 0

    except Exception as e:
        logger.error(f"Vector index building failed: {e}", exc_info=True)
        return 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Build the FAISS vector index from chunk records")
    parser.add_argument("--chunks", type=Path, default=CHUNKS_FILE, help="Chunks JSON file")
    parser.add_argument("--index-dir", type=Path, default=INDEX_DIR, help="Output directory")
    parser.add_argument("--model", default=EMBEDDING_MODEL, help="sentence-transformers model name")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info("Starting vector index build...")
    result = build_vector_index(args.chunks, args.index_dir, args.model)
    if result == 0:
        logger.info("[SUCCESS] Vector index build complete!")
    return result


if __name__ == "__main__":
    sys.exit(main())
