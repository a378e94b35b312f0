#!/usr/bin/env python3
"""Emit or apply the channel catalog DDL."""

from __future__ import annotations

import argparse
import asyncio

from app.services.repository import PostgresRepository
from app.services.schema import render_schema_sql


async def _apply(database_url: str) -> None:
    repository = PostgresRepository(database_url=database_url, min_pool_size=1, max_pool_size=1)
    try:
        await repository.ensure_schema()
    finally:
        await repository.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL for the channel catalog schema, or apply it.")
    parser.add_argument(
        "--apply",
        metavar="DATABASE_URL",
        help="Apply the schema to this Postgres database instead of printing it",
    )
    args = parser.parse_args()

    if args.apply:
        asyncio.run(_apply(args.apply))
        print("schema applied")
        return

    print("-- channelboard catalog schema (idempotent)\n")
    print(render_schema_sql())


if __name__ == "__main__":
    main()
