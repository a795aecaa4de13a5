"""Конфигурация приложения."""
import os
from functools import lru_cache


def _flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


@lru_cache
def get_config():
    room_ttl_seconds = int(os.environ.get("ROOM_TTL_SECONDS", 60 * 60))
    return type("Config", (), {
        "debug": _flag("DEBUG"),
        "allowed_origins": os.environ.get("ALLOWED_ORIGINS", "*").split(","),
        "room_ttl_seconds": room_ttl_seconds,
        # По умолчанию чистим с тем же периодом, что и TTL
        "reaper_interval_seconds": int(os.environ.get("REAPER_INTERVAL_SECONDS", room_ttl_seconds)),
        "reaper_notify": _flag("REAPER_NOTIFY"),
        "room_id_length": int(os.environ.get("ROOM_ID_LENGTH", 8)),
        "host": os.environ.get("HOST", "0.0.0.0"),
        "port": int(os.environ.get("PORT", 8000)),
    })()
