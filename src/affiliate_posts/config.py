import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import dotenv_values

from .logging import get_logger

log = get_logger("config")


BACKENDS = ("gemini", "openrouter", "openai")
DEFAULT_BACKEND = "gemini"

DEFAULT_MODELS: Dict[str, str] = {
    "gemini": "gemini-2.5-flash",
    "openrouter": "google/gemini-2.5-flash",
    "openai": "gpt-4o-mini",
}

# Keys that hold the provider credential, checked in order.
API_KEY_NAMES: Dict[str, tuple] = {
    "gemini": ("GEMINI_API_KEY", "API_KEY"),
    "openrouter": ("OPEN_ROUTER_API_KEY", "open_router_api_key"),
    "openai": ("OPENAI_API_KEY", "openai_api_key"),
}

MODEL_KEY_NAMES: Dict[str, str] = {
    "gemini": "GEMINI_MODEL",
    "openrouter": "OPENROUTER_MODEL",
    "openai": "OPENAI_MODEL",
}

PLACEHOLDER_API_KEY = "YOUR_GEMINI_API_KEY_HERE"


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    This makes running tools from subdirectories (e.g., `src/`) still find
    the repository-level `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Return the key/value pairs of the nearest .env; does not mutate os.environ."""
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    try:
        values = dotenv_values(path)
    except OSError as e:
        log.warning(f"Failed reading .env: {e}")
        return {}
    env = {k: v.strip() for k, v in values.items() if k and v is not None}
    log.debug(f"Loaded {len(env)} key(s) from .env at {path}")
    return env


def _lookup(env: Dict[str, str], *names: str) -> Optional[str]:
    for name in names:
        v = os.environ.get(name)
        if v and v.strip():
            return v.strip()
    for name in names:
        v = env.get(name)
        if v:
            return v
    return None


def clean_api_key(value: Optional[str]) -> Optional[str]:
    """Return the key stripped, or None when blank or still the sample placeholder."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value == PLACEHOLDER_API_KEY:
        return None
    return value


@dataclass(frozen=True)
class AppConfig:
    """Process configuration resolved once at startup and passed explicitly."""

    backend: str = DEFAULT_BACKEND
    model: str = DEFAULT_MODELS[DEFAULT_BACKEND]
    api_key: Optional[str] = field(default=None, repr=False)
    timeout_seconds: int = 120
    openai_base_url: Optional[str] = None
    db_path: Optional[str] = None

    @property
    def has_api_key(self) -> bool:
        return self.api_key is not None


def load_app_config(dotenv_dir: Optional[str] = None) -> AppConfig:
    """Build an AppConfig from the environment, falling back to the nearest .env."""
    env = _read_dotenv(dotenv_dir or os.getcwd())

    backend = (_lookup(env, "GENERATION_BACKEND") or DEFAULT_BACKEND).lower()
    if backend not in BACKENDS:
        log.warning("Unknown GENERATION_BACKEND=%r; defaulting to '%s'", backend, DEFAULT_BACKEND)
        backend = DEFAULT_BACKEND

    model = _lookup(env, MODEL_KEY_NAMES[backend]) or DEFAULT_MODELS[backend]
    api_key = clean_api_key(_lookup(env, *API_KEY_NAMES[backend]))

    timeout_raw = _lookup(env, "GENERATION_TIMEOUT")
    try:
        timeout = int(timeout_raw) if timeout_raw else 120
    except ValueError:
        log.warning("GENERATION_TIMEOUT=%r is not an integer; using 120", timeout_raw)
        timeout = 120

    config = AppConfig(
        backend=backend,
        model=model,
        api_key=api_key,
        timeout_seconds=max(1, timeout),
        openai_base_url=_lookup(env, "OPENAI_BASE_URL"),
        db_path=_lookup(env, "RECORD_DB_PATH"),
    )
    log.info(
        "Generation backend=%s model=%s api_key=%s",
        config.backend,
        config.model,
        "set" if config.has_api_key else "missing",
    )
    return config


def parse_origins(values: Optional[List[str]]) -> Optional[List[str]]:
    """Collapse repeated --allow-origin flags; a lone '*' means any origin."""
    if not values:
        return None
    cleaned = [v.strip() for v in values if v and v.strip()]
    if "*" in cleaned:
        return ["*"]
    return cleaned or None
