import asyncio
import datetime
import os
import pathlib
import shutil
import sys

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/factiony.db")


def sqlite_path() -> str | None:
    """File behind a sqlite DATABASE_URL, None for other backends."""
    if not DATABASE_URL.startswith("sqlite") or ":memory:" in DATABASE_URL:
        return None
    return DATABASE_URL.split(":///", 1)[-1]


def check_db():
    print("📊 Checking database...")
    db_path = sqlite_path()
    if db_path is None:
        print(f"ℹ️  Non-file database configured: {DATABASE_URL.split('://')[0]}")
    elif os.path.exists(db_path):
        print(f"✅ Database exists at {db_path} ({os.path.getsize(db_path) // 1024} KB)")
    else:
        print("⚠️  Database not found (will be created on first run)")


def backup_db():
    print("💾 Backing up database...")
    src = sqlite_path()
    if src is None or not os.path.exists(src):
        print("⚠️  No database file to backup")
        return
    os.makedirs("backups", exist_ok=True)
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    dst = f"backups/factiony_{timestamp}.db"
    shutil.copy2(src, dst)
    print(f"✅ Database backed up to {dst}")


def purge_cache():
    print("🧹 Purging expired api cache entries...")
    sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent / "src"))
    from factiony_core.db import Database
    from factiony_core.store import GameStore
    from factiony_core.sweeper import CacheSweeper

    async def run():
        store = GameStore(Database(DATABASE_URL))
        await store.setup()
        try:
            return await CacheSweeper(store).run_once()
        finally:
            await store.close()

    removed = asyncio.run(run())
    print(f"✅ Removed {removed} expired entr{'y' if removed == 1 else 'ies'}")


def check_env():
    print("🔍 Checking environment configuration...")
    if not os.path.exists(".env"):
        print("⚠️  .env file not found, using process environment only")
    for name in ("RAWG_API_KEY", "IGDB_CLIENT_ID", "IGDB_ACCESS_TOKEN", "YOUTUBE_API_KEY"):
        state = "✅ set" if os.getenv(name) else "⚠️  missing (provider disabled)"
        print(f"  {name}: {state}")


def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/tasks.py <command>")
        sys.exit(1)

    command = sys.argv[1]

    commands = {
        "check-db": check_db,
        "backup-db": backup_db,
        "purge-cache": purge_cache,
        "check-env": check_env,
    }

    if command in commands:
        commands[command]()
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
