"""
Name: Expired Grants Purge Script

Responsibilities:
  - Physically delete expired folder grants in bounded batches
  - Safe to re-run: expired grants are already ignored by access checks
"""

from __future__ import annotations

import argparse
import os
import sys

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from workspace_authz.container import get_services  # noqa: E402
from workspace_authz.crosscutting.config import get_settings  # noqa: E402
from workspace_authz.crosscutting.logger import setup_logger  # noqa: E402
from workspace_authz.infrastructure.db.pool import close_pool, init_pool  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete expired folder grants.")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Rows per DELETE (default: GRANT_PURGE_BATCH_SIZE)",
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    settings = get_settings()
    setup_logger()

    if settings.repository_backend != "postgres":
        raise SystemExit("REPOSITORY_BACKEND=postgres is required to purge grants.")

    init_pool(database_url=settings.database_url, min_size=1, max_size=2)
    try:
        removed = get_services().grant_store.purge_expired(
            batch_size=args.batch_size or settings.grant_purge_batch_size
        )
    finally:
        close_pool()
    print(f"Deleted {removed} expired grant(s)")


if __name__ == "__main__":
    main()
