"""
Database CLI Commands

Schema operations: init
"""
import asyncio
from typing import Optional

from botarena.cli.common import engine_for
from botarena.database import init_db


class DbCommand:
    """Database CLI command handler."""

    def __init__(self, dry_run: bool = False, database_url: Optional[str] = None):
        self.dry_run = dry_run
        self.database_url = database_url

    def execute(self, args) -> int:
        """Execute database command."""
        if args.db_action == "init":
            return self._init(args)
        else:
            print("Error: Unknown db action")
            return 1

    def _init(self, args) -> int:
        """Create all tables."""
        print("=== Database Init ===")

        if self.dry_run:
            print("[DRY RUN] Would create all schema and engine tables")
            return 0

        asyncio.run(self._async_init())
        print("✓ Tables created")
        return 0

    async def _async_init(self) -> None:
        async with engine_for(self.database_url) as engine:
            await init_db(engine)
