from .engine import Database
from .models import ApiCacheEntry, Base, Game, GameStat, LocalBase, LocalCacheEntry

__all__ = ["ApiCacheEntry", "Base", "Database", "Game", "GameStat", "LocalBase", "LocalCacheEntry"]
