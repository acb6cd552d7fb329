"""Pytest configuration and fixtures for maddox tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import maddox.cli as cli_module  # noqa: E402
import maddox.config as config_module  # noqa: E402

ENV_VARS = (
    "MADDOX_HOST",
    "MADDOX_PORT",
    "PORT",
    "MADDOX_CORS_ORIGINS",
    "MADDOX_CACHE_DIR",
    "MADDOX_SERVER_URL",
    "ELEVEN_LABS_VOICE_ID",
    "OPENAI_API_KEY",
    "ELEVEN_LABS_API_KEY",
    "ELEVENLABS_API_KEY",
    "GOOGLE_APPLICATION_CREDENTIALS",
)


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch, tmp_path: Path) -> Path:
    """Point config and working directory at a per-test temp location."""
    config_dir = tmp_path / "config"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_PATH", config_dir / "config.toml")
    monkeypatch.setattr(cli_module, "CONFIG_PATH", config_dir / "config.toml")
    monkeypatch.setattr(config_module, "_cached_config", None)

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    # Relative cache dirs and ./google-credentials.json resolve here
    monkeypatch.chdir(tmp_path)
    return config_dir


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Empty audio cache directory."""
    path = tmp_path / "cache" / "audio"
    path.mkdir(parents=True)
    return path
