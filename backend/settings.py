import os
from pathlib import Path

# Basic settings helper to read environment configuration.

BACKEND_ROOT = Path(__file__).resolve().parent
DATA_DIR = BACKEND_ROOT / "data"


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.CLOUDINARY_CLOUD_NAME: str | None = os.getenv("CLOUDINARY_CLOUD_NAME")
        self.CLOUDINARY_API_KEY: str | None = os.getenv("CLOUDINARY_API_KEY")
        self.CLOUDINARY_API_SECRET: str | None = os.getenv("CLOUDINARY_API_SECRET")
        self.GALLERY_ROOT: str = os.getenv("GALLERY_ROOT") or "postcards"
        self.MEDIA_HOST_TIMEOUT: float = _as_float(os.getenv("MEDIA_HOST_TIMEOUT"), 30.0)

        self.TRAVEL_POINTS_PATH: str = os.getenv("TRAVEL_POINTS_PATH") or str(DATA_DIR / "travel-points.json")
        self.GEOCODE_CACHE_PATH: str = os.getenv("GEOCODE_CACHE_PATH") or str(DATA_DIR / "geocode-cache.json")
        self.GALLERY_OUTPUT_PATH: str = os.getenv("GALLERY_OUTPUT_PATH") or str(DATA_DIR / "gallery.json")

        self.NOMINATIM_USER_AGENT: str | None = os.getenv("NOMINATIM_USER_AGENT")
        self.NOMINATIM_REFERER: str | None = os.getenv("NOMINATIM_REFERER")
        self.NOMINATIM_MIN_INTERVAL: float = _as_float(os.getenv("NOMINATIM_MIN_INTERVAL"), 1.1)
        self.GEOCODING_ENABLED: bool = _as_bool(os.getenv("GEOCODING_ENABLED"), True)

    @property
    def has_media_credentials(self) -> bool:
        return bool(self.CLOUDINARY_CLOUD_NAME and self.CLOUDINARY_API_KEY and self.CLOUDINARY_API_SECRET)


def load_settings() -> Settings:
    """Re-read the environment (CLIs call this after loading a .env file)."""
    return Settings()


settings = Settings()
