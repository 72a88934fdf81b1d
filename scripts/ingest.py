#!/usr/bin/env python3
"""
Ingest PDF files or folders into the configured vector store.

Every ingestion tunable is exposed as a flag; defaults come from settings
(.env / environment).

Usage:
    python scripts/ingest.py --path data/reports
    python scripts/ingest.py --path deck.pdf --strategy perpage --log-pages
    python scripts/ingest.py --path data --files-limit 5 --chunk-size 800 --overlap 120

Exit codes:
    0  success (including documents that produced no chunks)
    1  configuration error (missing API keys, unknown provider)
    2  input path not found
"""

import argparse
import asyncio
import logging
import sys

from fin_rag.config import settings
from fin_rag.exceptions import ConfigurationError
from fin_rag.logging_config import configure_logging
from fin_rag.services.chunker import STRATEGIES
from fin_rag.services.ingestion import IngestOptions, ingest

logger = logging.getLogger("fin_rag.scripts.ingest")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ingest financial PDFs into the vector store")
    parser.add_argument("--path", nargs="+", required=True, help="PDF files or directories")
    parser.add_argument("--collection", default=None, help="Target collection name")

    chunking = parser.add_argument_group("chunking")
    chunking.add_argument("--chunk-size", type=int, default=settings.chunk_size)
    chunking.add_argument("--overlap", type=int, default=settings.chunk_overlap)
    chunking.add_argument("--min-chunk-chars", type=int, default=settings.min_chunk_chars)
    chunking.add_argument("--dedupe-window", type=int, default=settings.dedupe_window)
    chunking.add_argument("--strategy", choices=STRATEGIES, default="auto")
    chunking.add_argument("--per-page", action=argparse.BooleanOptionalAction, default=False)
    chunking.add_argument("--header-prefix", action=argparse.BooleanOptionalAction, default=True)
    chunking.add_argument("--detect-slides", action=argparse.BooleanOptionalAction, default=True)

    batching = parser.add_argument_group("batching")
    batching.add_argument("--batch-size", type=int, default=settings.embed_batch_size,
                          help="Chunks per embedding request")
    batching.add_argument("--upsert-batch", type=int, default=settings.upsert_batch_size,
                          help="Points per upsert request")
    batching.add_argument("--timeout", type=float, default=settings.provider_timeout_seconds,
                          help="Per-call timeout in seconds")

    limits = parser.add_argument_group("limits")
    limits.add_argument("--page-limit", type=int, default=0, help="Pages per document (0 = all)")
    limits.add_argument("--files-limit", type=int, default=0, help="Documents to ingest (0 = all)")
    limits.add_argument("--log-pages", action="store_true", help="Log per-page stats")
    limits.add_argument("--log-level", default=None)
    return parser


def main() -> int:
    args = build_parser().parse_args()
    configure_logging(args.log_level)

    options = IngestOptions(
        chunk_size=args.chunk_size,
        chunk_overlap=args.overlap,
        embed_batch_size=args.batch_size,
        upsert_batch_size=args.upsert_batch,
        min_chunk_chars=args.min_chunk_chars,
        dedupe_window=args.dedupe_window,
        per_page=args.per_page,
        strategy=args.strategy,
        header_prefix=args.header_prefix,
        detect_slides=args.detect_slides,
        page_limit=args.page_limit,
        files_limit=args.files_limit,
        timeout_seconds=args.timeout,
        log_pages=args.log_pages,
        collection=args.collection,
    )

    try:
        counts = asyncio.run(ingest(args.path, options))
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 2

    for path, count in counts.items():
        print(f"{count:6d}  {path}")
    print(f"{sum(counts.values()):6d}  total chunks across {len(counts)} document(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
