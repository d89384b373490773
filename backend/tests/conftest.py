import sys
from pathlib import Path

import pytest

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch):
    """Keep a developer's local .env from leaking credentials into CLI tests."""
    from scripts import build_gallery, list_media_folder, sync_travel_points

    for module in (build_gallery, list_media_folder, sync_travel_points):
        monkeypatch.setattr(module, "load_dotenv", lambda *args, **kwargs: False)
