#!/usr/bin/env python3
"""
Inspect the vector store collection used for retrieval.

Prints the collection's declared vector size, its point count and a
payload sample, optionally filtered by company. Useful for checking that
ingestion used the expected embedding model before querying.

Usage:
    python scripts/inspect_collection.py
    python scripts/inspect_collection.py --company Acme --limit 5 --show-text
"""

import argparse
import sys

from fin_rag.config import settings
from fin_rag.services.vectorstore import get_vector_store


def _truncate(value, n: int = 140) -> str:
    text = "" if value is None else str(value)
    return text if len(text) <= n else text[:n] + "..."


def main() -> int:
    parser = argparse.ArgumentParser(description="Inspect the vector store collection")
    parser.add_argument("--collection", default=settings.qdrant_collection)
    parser.add_argument("--company", default=None, help="Exact company filter for the sample")
    parser.add_argument("--limit", type=int, default=10)
    parser.add_argument("--show-text", action="store_true")
    parser.add_argument("--store", choices=["qdrant", "chroma"], default=None)
    args = parser.parse_args()

    store = get_vector_store(args.store)
    size = store.get_collection_size(args.collection)
    print(f"== Collection '{args.collection}' ({args.store or settings.vectorstore_type}) ==")
    if size is None:
        print("Collection does not exist. Run scripts/ingest.py first.")
        return 1
    print(f"vector size: {size}")
    print(f"points:      {store.count(args.collection)}")

    filter = {"company": args.company} if args.company else None
    points = store.sample(args.collection, limit=max(1, args.limit), filter=filter)
    print(f"\n== Sample of {len(points)} point(s){' for ' + args.company if args.company else ''} ==")
    for p in points:
        payload = p.payload
        print(
            f"- id={p.id} company={payload.get('company')} doc_type={payload.get('doc_type')} "
            f"date={payload.get('published_date')} chunk={payload.get('chunk_index')} "
            f"pages={payload.get('page_start')}-{payload.get('page_end')}"
        )
        print(f"  title: {_truncate(payload.get('title'))}")
        if args.show_text:
            print(f"  text:  {_truncate(payload.get('text'), 400)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
