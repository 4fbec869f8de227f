import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/factiony.db")
RAWG_API_KEY = os.getenv("RAWG_API_KEY", "")
IGDB_CLIENT_ID = os.getenv("IGDB_CLIENT_ID", "")
IGDB_ACCESS_TOKEN = os.getenv("IGDB_ACCESS_TOKEN", "")
YOUTUBE_API_KEY = os.getenv("YOUTUBE_API_KEY", "")
DEFAULT_LOCALE = os.getenv("DEFAULT_LOCALE", "en")
HOST = os.getenv("HOST", "0.0.0.0")  # nosec B104
PORT = int(os.getenv("PORT", "8080"))
SWEEP_INTERVAL = int(os.getenv("SWEEP_INTERVAL", "3600"))  # seconds
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
