"""Configuration management for maddox.

Loads configuration from ~/.config/maddox/config.toml.
Priority chain: CLI flags > env vars > config file.
"""

import os
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_DIR = Path.home() / ".config" / "maddox"
CONFIG_PATH = CONFIG_DIR / "config.toml"

DEFAULT_VOICE_ID = "TnVT7p6RBpw3AtQyx4cd"
DEFAULT_CREDENTIALS_FILE = Path("google-credentials.json")

DEFAULT_CONFIG = """\
# maddox configuration

[server]
# Bind address: "127.0.0.1" = localhost only, "0.0.0.0" = allow LAN access
host = "0.0.0.0"
port = 5000

# Origins allowed to call the API from a browser
cors_origins = ["http://localhost:5173", "http://localhost:3000"]

[voice]
# ElevenLabs voice used when a request does not name one
voice_id = "TnVT7p6RBpw3AtQyx4cd"

# Voice settings the client sends with every synthesis request
stability = 0.75
similarity_boost = 0.75

[cache]
# Directory for synthesized audio (relative paths resolve from the working directory)
dir = "cache/audio"

[client]
# Server the voice chat client talks to
server_url = "http://localhost:5000"

# API keys are read from environment variables, not this file:
#   OPENAI_API_KEY                  - chat completions
#   ELEVEN_LABS_API_KEY             - speech synthesis
#   GOOGLE_APPLICATION_CREDENTIALS  - speech recognition service account file
"""


@dataclass(frozen=True)
class ServerConfig:
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: tuple[str, ...] = ()


@dataclass(frozen=True)
class VoiceConfig:
    """Speech synthesis defaults."""

    voice_id: str = DEFAULT_VOICE_ID
    stability: float = 0.75
    similarity_boost: float = 0.75


@dataclass(frozen=True)
class CacheConfig:
    """Synthesized audio cache configuration."""

    dir: Path = Path("cache/audio")


@dataclass(frozen=True)
class ClientConfig:
    """Voice chat client configuration."""

    server_url: str = "http://localhost:5000"


@dataclass(frozen=True)
class Credentials:
    """Provider secrets, read from the environment only."""

    openai_api_key: str | None = None
    elevenlabs_api_key: str | None = None
    google_credentials: Path | None = None

    @classmethod
    def from_env(cls) -> "Credentials":
        google = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
        if google:
            google_path: Path | None = Path(google)
        elif DEFAULT_CREDENTIALS_FILE.exists():
            google_path = DEFAULT_CREDENTIALS_FILE
        else:
            google_path = None

        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            elevenlabs_api_key=os.getenv("ELEVEN_LABS_API_KEY")
            or os.getenv("ELEVENLABS_API_KEY")
            or None,
            google_credentials=google_path,
        )


@dataclass(frozen=True)
class MaddoxConfig:
    """Top-level maddox configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    credentials: Credentials = field(default_factory=Credentials.from_env)


_cached_config: MaddoxConfig | None = None


def generate_config() -> Path:
    """Generate default config file at ~/.config/maddox/config.toml."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(DEFAULT_CONFIG)
    return CONFIG_PATH


def _split_origins(value: str) -> tuple[str, ...]:
    return tuple(origin.strip() for origin in value.split(",") if origin.strip())


def load_config() -> MaddoxConfig:
    """Load configuration from config file with env var overrides.

    On first run, generates the config file and exits so the user
    can review it before proceeding.

    Returns:
        Loaded and validated MaddoxConfig.

    Raises:
        SystemExit: If config is missing (after generating) or invalid.
    """
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if not CONFIG_PATH.exists():
        path = generate_config()
        print(
            f"No config found. Generated {path}, review it and run again.",
            file=sys.stderr,
        )
        raise SystemExit(1)

    with open(CONFIG_PATH, "rb") as f:
        data = tomllib.load(f)

    server = data.get("server", {})
    voice = data.get("voice", {})
    cache = data.get("cache", {})
    client = data.get("client", {})

    # Validate required fields
    missing = []
    if "port" not in server:
        missing.append("server.port")
    if "voice_id" not in voice:
        missing.append("voice.voice_id")
    if "dir" not in cache:
        missing.append("cache.dir")

    if missing:
        print(
            f"Missing required config values: {', '.join(missing)}",
            file=sys.stderr,
        )
        print(f"Edit {CONFIG_PATH} or delete it to regenerate.", file=sys.stderr)
        raise SystemExit(1)

    # Env vars override config file values
    port_str = os.getenv("MADDOX_PORT") or os.getenv("PORT") or str(server["port"])
    origins_env = os.getenv("MADDOX_CORS_ORIGINS")

    _cached_config = MaddoxConfig(
        server=ServerConfig(
            host=os.getenv("MADDOX_HOST", server.get("host", "0.0.0.0")),
            port=int(port_str),
            cors_origins=_split_origins(origins_env)
            if origins_env is not None
            else tuple(server.get("cors_origins", ())),
        ),
        voice=VoiceConfig(
            voice_id=os.getenv("ELEVEN_LABS_VOICE_ID", voice["voice_id"]),
            stability=float(voice.get("stability", 0.75)),
            similarity_boost=float(voice.get("similarity_boost", 0.75)),
        ),
        cache=CacheConfig(
            dir=Path(os.getenv("MADDOX_CACHE_DIR", cache["dir"])),
        ),
        client=ClientConfig(
            server_url=os.getenv(
                "MADDOX_SERVER_URL",
                client.get("server_url", f"http://localhost:{port_str}"),
            ),
        ),
        credentials=Credentials.from_env(),
    )

    return _cached_config
