#!/usr/bin/env python3
"""
Re-embedding Script

Re-embeds every stored record with the currently configured embedding
provider. Run this after switching embedding models (or after adding an
API key to replace offline hash embeddings); the store is rewritten in
one go, so the dimension may change.

Requires a remote provider. Records are never re-embedded with the local
hash fallback, and if any record fails the store is left unchanged.

Usage:
    python scripts/reembed_store.py [--dry-run] [--batch-size 50]
"""

import sys
import asyncio
import argparse


async def reembed_store(store, embedding_svc, batch_size: int = 50, dry_run: bool = False) -> int:
    """
    Re-embed all records of `store` with `embedding_svc`.

    Returns:
        Process exit code (0 on success)
    """
    from studyrag.common.embedding_service import EmbeddingError

    print(f"[Reembed] Model: {embedding_svc.model}")
    if not embedding_svc.is_remote:
        print("[Reembed] ERROR: No remote embedding provider configured (set HF_API_KEY)")
        return 1

    try:
        test_vec = await embedding_svc.embed("test", strict=True)
    except EmbeddingError as e:
        print(f"[Reembed] ERROR: Embedding provider unavailable: {e}")
        return 1
    print(f"[Reembed] Embedding dimension: {len(test_vec)}")

    records = await store.load_all()
    total = len(records)
    print(f"[Reembed] Found {total} records")

    if dry_run:
        print("[Reembed] DRY RUN - no changes will be made")
        print(f"[Reembed] Batch size: {batch_size}")
        return 0

    if total == 0:
        print("[Reembed] No records to re-embed")
        return 0

    updated = []
    errors = 0

    for i in range(0, total, batch_size):
        batch = records[i:i + batch_size]
        print(f"[Reembed] Re-embedding batch {i // batch_size + 1} ({len(batch)} records)...")
        for record in batch:
            try:
                embedding = await embedding_svc.embed(record.content, strict=True)
            except EmbeddingError as e:
                print(f"[Reembed] ERROR: {record.id}: {e}")
                errors += 1
                continue
            updated.append(record.model_copy(update={"embedding": embedding}))

    if errors:
        print(f"[Reembed] ERROR: {errors} record(s) failed, store left unchanged")
        return 1

    await store.replace_all(updated)
    print(f"[Reembed] Complete: {len(updated)} re-embedded, {total} total")
    return 0


async def reembed(dry_run: bool, batch_size: int) -> int:
    from studyrag.common.config import load_config
    from studyrag.common.embedding_service import EmbeddingService
    from studyrag.common.vector_store import VectorStore

    config = load_config()

    print("[Reembed] Initializing embedding service...")
    embedding_svc = EmbeddingService.from_config(config.embedding)
    store = VectorStore.from_config(config.store)
    print(f"[Reembed] Store: {config.store.path}")

    return await reembed_store(store, embedding_svc, batch_size=batch_size, dry_run=dry_run)


def main():
    parser = argparse.ArgumentParser(description="Re-embed stored records with the configured provider")
    parser.add_argument("--dry-run", action="store_true", help="Print what would be done without executing")
    parser.add_argument("--batch-size", type=int, default=50, help="Number of records to process per batch")
    args = parser.parse_args()

    sys.exit(asyncio.run(reembed(args.dry_run, args.batch_size)))


if __name__ == "__main__":
    main()
