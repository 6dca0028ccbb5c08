#!/usr/bin/env python3
"""
Recompute dep_path and is_parent for every department from parent_id links.

Use after bulk imports or manual SQL edits that touched parent_id directly.
Runs in a single transaction; --dry-run rolls back instead of committing.

Usage:
    python scripts/rebuild_department_paths.py [--dry-run]
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from hrms.core.logging import configure_logging
from hrms.db.session import AsyncSessionLocal, engine
from hrms.repositories.departments import SqlDepartmentStore
from hrms.services.departments import DepartmentHierarchy

logger = logging.getLogger("scripts.rebuild_department_paths")


async def rebuild(dry_run: bool) -> int:
    async with AsyncSessionLocal() as session:
        hierarchy = DepartmentHierarchy(SqlDepartmentStore(session))
        changed = await hierarchy.rebuild_paths()
        if dry_run:
            await session.rollback()
            logger.info("Dry run: %d department rows would change", changed)
        else:
            await session.commit()
            logger.info("Updated %d department rows", changed)
    await engine.dispose()
    return changed


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--dry-run", action="store_true", help="report changes without committing")
    args = parser.parse_args()
    configure_logging()
    asyncio.run(rebuild(args.dry_run))


if __name__ == "__main__":
    main()
