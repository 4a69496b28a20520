"""Backend configuration read from the environment."""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

# Primary name first, hosted-platform name as fallback
URL_VARS = ("STOREFRONT_BACKEND_URL", "SUPABASE_URL")
KEY_VARS = ("STOREFRONT_ANON_KEY", "SUPABASE_ANON_KEY")

DEFAULT_SESSION_PATH = Path.home() / ".config" / "storefront" / "session.enc"

DISABLED_MESSAGE = (
    "Backend is not configured. Provide STOREFRONT_BACKEND_URL and "
    "STOREFRONT_ANON_KEY to enable data fetching."
)
NOT_CONFIGURED = "Backend client is not configured"


@dataclass(frozen=True)
class BackendConfig:
    """Endpoint, key and tuning values for the hosted backend."""
    url: str
    anon_key: str
    timeout: float = 30.0
    poll_interval: float = 5.0
    session_path: Path = DEFAULT_SESSION_PATH
    redirect_url: str | None = None
    debug_dir: Path | None = None


def _first(env: Mapping[str, str], names: tuple[str, ...]) -> str:
    for name in names:
        value = env.get(name, "").strip()
        if value:
            return value
    return ""


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def load_config(env: Mapping[str, str] | None = None) -> BackendConfig | None:
    """
    Build a BackendConfig from environment variables.

    Returns None when the endpoint or key is missing; callers then run in
    disabled mode instead of failing.
    """
    env = os.environ if env is None else env
    url = _first(env, URL_VARS)
    anon_key = _first(env, KEY_VARS)
    if not url or not anon_key:
        logger.warning(DISABLED_MESSAGE)
        return None

    session_path = env.get("STOREFRONT_SESSION_PATH")
    debug_dir = env.get("STOREFRONT_DEBUG_DIR")
    return BackendConfig(
        url=url.rstrip("/"),
        anon_key=anon_key,
        timeout=_float(env, "STOREFRONT_TIMEOUT", 30.0),
        poll_interval=_float(env, "STOREFRONT_POLL_INTERVAL", 5.0),
        session_path=Path(session_path).expanduser() if session_path else DEFAULT_SESSION_PATH,
        redirect_url=env.get("STOREFRONT_REDIRECT_URL") or None,
        debug_dir=Path(debug_dir).expanduser() if debug_dir else None,
    )
