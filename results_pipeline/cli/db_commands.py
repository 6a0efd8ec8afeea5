"""
Database CLI Commands
"""
import asyncio

from results_pipeline.database import init_db, close_db


class DbCommand:
    """Database CLI command handler."""

    def execute(self, args) -> int:
        if args.db_action == "init":
            return self._init()
        print("Error: Unknown database action")
        return 1

    def _init(self) -> int:
        print("=== Database Init ===")
        try:
            asyncio.run(self._async_init())
        except Exception as e:
            print(f"Error: {e}")
            return 1
        print("✓ Tables created")
        return 0

    async def _async_init(self) -> None:
        try:
            await init_db()
        finally:
            await close_db()
