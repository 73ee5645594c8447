"""Environment-driven settings for the storefront client."""
import os
from dataclasses import dataclass, field
from pathlib import Path

DEV_API_URL = "http://localhost:5000/api"
PROD_API_PATH = "/api"

CONFIG_DIR = Path.home() / ".config" / "storefront-client"


def _env_path(name: str, default: Path) -> Path:
    value = os.environ.get(name)
    return Path(os.path.expanduser(value)) if value else default


def resolve_base_url() -> str:
    """Pick the API base URL: explicit override, dev server, or same-origin production."""
    explicit = os.environ.get("STOREFRONT_API_URL")
    if explicit:
        return explicit.rstrip("/")
    if os.environ.get("STOREFRONT_ENV", "development").lower() == "development":
        return DEV_API_URL
    origin = os.environ.get("STOREFRONT_ORIGIN", "http://localhost")
    return origin.rstrip("/") + PROD_API_PATH


@dataclass
class Settings:
    base_url: str = field(default_factory=resolve_base_url)
    timeout: float = field(default_factory=lambda: float(os.environ.get("STOREFRONT_TIMEOUT", "15")))
    token_path: Path = field(default_factory=lambda: _env_path("STOREFRONT_TOKEN_PATH", CONFIG_DIR / "token.enc"))
    key_path: Path = field(default_factory=lambda: _env_path("STOREFRONT_KEY_PATH", CONFIG_DIR / "token.key"))
    debug_dir: Path = field(default_factory=lambda: _env_path("STOREFRONT_DEBUG_DIR", CONFIG_DIR / "debug"))
    chat_poll_seconds: float = field(
        default_factory=lambda: float(os.environ.get("STOREFRONT_CHAT_POLL_SECONDS", "5"))
    )
