"""
Name: Ancestor Paths Backfill Script

Responsibilities:
  - Materialize ancestor_ids for every node, batch by batch (idempotent)
  - Resume from a cursor printed by a previous (cancelled) run
  - Stop cleanly between batches on Ctrl+C

Usage:
  python scripts/backfill_ancestor_paths.py --batch-size 500
  python scripts/backfill_ancestor_paths.py --cursor <last-node-id>
"""

from __future__ import annotations

import argparse
import os
import signal
import sys
import threading
from uuid import UUID

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from workspace_authz.container import get_services  # noqa: E402
from workspace_authz.crosscutting.config import get_settings  # noqa: E402
from workspace_authz.crosscutting.logger import setup_logger  # noqa: E402
from workspace_authz.infrastructure.db.pool import close_pool, init_pool  # noqa: E402


def _parse_args() -> argparse.Namespace:
    argv = sys.argv[1:]
    if argv and argv[0] == "--":
        argv = argv[1:]
    parser = argparse.ArgumentParser(
        description="Backfill ancestor_ids for the folder/document tree."
    )
    parser.add_argument("--cursor", type=UUID, help="Resume after this node id")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Nodes per batch (default: ANCESTOR_BACKFILL_BATCH_SIZE)",
    )
    parser.add_argument(
        "--max-batches",
        type=int,
        default=None,
        help="Stop after N batches (useful for throttled rollouts)",
    )
    return parser.parse_args(argv)


def main() -> int:
    args = _parse_args()
    settings = get_settings()
    setup_logger()

    cancelled = threading.Event()

    def _on_sigint(signum, frame):
        print("Cancel requested, finishing current batch...", file=sys.stderr)
        cancelled.set()

    signal.signal(signal.SIGINT, _on_sigint)

    if settings.repository_backend == "postgres":
        init_pool(
            database_url=settings.database_url,
            min_size=1,
            max_size=2,
        )
    try:
        progress = get_services().paths.backfill(
            batch_size=args.batch_size or settings.ancestor_backfill_batch_size,
            cursor=args.cursor,
            should_cancel=cancelled.is_set,
            max_batches=args.max_batches,
        )
    finally:
        if settings.repository_backend == "postgres":
            close_pool()

    print(
        f"processed={progress.processed} migrated={progress.migrated} "
        f"skipped={progress.skipped} errors={progress.errors} "
        f"batches={progress.batches}"
    )
    if not progress.done:
        print(f"Resume with: --cursor {progress.cursor}")
    return 1 if progress.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
