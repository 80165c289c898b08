"""
Text Ingestion Script for the Page Search retrieval engine.

This script:
1. Reads cleaned page text from a file (or stdin with "-")
2. Chunks it into token-budgeted chunks
3. Indexes the chunks (mirroring them into Supabase when USE_VECTOR_SEARCH=true)
4. Runs each --query against the index and prints the ranked chunks

Usage:
    python ingest_text.py page.txt --query "pricing plans" --limit 5
"""
import argparse
import json
import sys
import logging
from pathlib import Path
from typing import List, Optional

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from services.chunking_engine import ChunkingEngine
from services.retrieval_engine import RetrievalEngine
from logger import setup_logging
from config import CHUNK_SIZE, DEFAULT_SEARCH_LIMIT, LOG_LEVEL

logger = logging.getLogger(__name__)


def read_text(path: str) -> str:
    """
    Read page text from a file path, or from stdin when path is "-".

    Args:
        path: File path or "-"

    Returns:
        File contents
    """
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def print_results(query: str, results: List[dict], as_json: bool) -> None:
    if as_json:
        print(json.dumps({"query": query, "results": results}, indent=2))
        return

    print("=" * 60)
    print(f"Query: {query}")
    print("=" * 60)
    if not results:
        print("No relevant chunks found")
    for result in results:
        preview = result["text"].replace("\n", " ")[:160]
        print(f"[{result['relevancePercentage']:3d}%] chunk {result['id']} "
              f"({result['tokenCount']} tokens): {preview}")
    print()


def main(argv: Optional[List[str]] = None) -> int:
    """Main ingestion process."""
    parser = argparse.ArgumentParser(
        description="Chunk, index and search cleaned page text"
    )
    parser.add_argument("path", help="Text file with cleaned page content, or - for stdin")
    parser.add_argument(
        "--query",
        action="append",
        default=[],
        help="Query to run after indexing (repeatable)"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_SEARCH_LIMIT,
        help=f"Maximum results per query (default: {DEFAULT_SEARCH_LIMIT})"
    )
    parser.add_argument(
        "--max-tokens",
        type=int,
        default=CHUNK_SIZE,
        help=f"Maximum tokens per chunk (default: {CHUNK_SIZE})"
    )
    parser.add_argument("--source", default=None, help="Source identifier stored with each chunk")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs")

    args = parser.parse_args(argv)

    if args.json_logs:
        setup_logging(LOG_LEVEL)

    try:
        text = read_text(args.path)
    except OSError as e:
        logger.error(f"Could not read {args.path}: {e}")
        return 1

    try:
        chunking_engine = ChunkingEngine()
        chunks = chunking_engine.chunk_text(text, max_tokens=args.max_tokens, source=args.source)
    except ValueError as e:
        logger.error(f"Chunking failed: {e}")
        return 1

    if not chunks:
        logger.error("No text to index")
        return 1

    engine = RetrievalEngine.from_config()
    outcome = engine.index_with_status(chunks)
    if outcome.degraded:
        logger.warning(f"Indexed in memory only: {outcome.reason}")
    logger.info(f"Indexed {len(chunks)} chunks")

    for query in args.query:
        results = engine.search(query, limit=args.limit)
        print_results(query, [result.to_dict() for result in results], args.json)

    return 0


if __name__ == "__main__":
    sys.exit(main())
