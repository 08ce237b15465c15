from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from streamgate.config.settings import clear_settings_cache
from streamgate.main import create_app


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> TestClient:
    monkeypatch.setenv("SG_ROTATION_STATE_FILE", str(tmp_path / "rr.txt"))
    monkeypatch.setenv("SG_PROVIDERS", "openai,groq")
    clear_settings_cache()
    app = create_app()
    return TestClient(app)
