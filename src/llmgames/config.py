"""
Configuration and environment loading for llmgames.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- Exposes SETTINGS with keys used across the project (oracle endpoint, timeouts, storage, rendering).
"""
from dataclasses import dataclass
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

load_dotenv()


def _repo_root() -> str:
    # this file: src/llmgames/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return data if isinstance(data, dict) else {}


def _getter(cfg: dict) -> Callable[..., Any]:
    def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
        # YAML takes precedence
        if name in cfg:
            val = cfg[name]
            return cast(val) if cast else val
        env = os.environ.get(name)
        if env is not None:
            return cast(env) if cast else env
        return default
    return _get


@dataclass(frozen=True)
class Settings:
    # Oracle endpoint (OpenAI-compatible chat completions)
    llm_api_key: str
    api_base: str
    model: str

    # Tuning knobs
    oracle_timeout_s: float
    oracle_retries: int
    max_generation_attempts: int

    # Storage / presentation
    data_dir: str
    board_glyphs: str
    log_level: str


def load_settings(path: str | None = None) -> Settings:
    """Build Settings from a YAML file (default: <repo>/settings.yml) and the environment."""
    cfg = _load_yaml(path or os.path.join(_repo_root(), "settings.yml"))
    _get = _getter(cfg)
    return Settings(
        llm_api_key=_get("LLMGAMES_LLM_API_KEY", _get("OPENAI_API_KEY", "")),
        api_base=_get("LLMGAMES_LLM_BASE_URL", "https://api.openai.com/v1"),
        model=_get("LLMGAMES_MODEL", "gpt-4o-mini"),
        oracle_timeout_s=float(_get("LLMGAMES_ORACLE_TIMEOUT_S", 60.0, cast=float)),
        oracle_retries=int(_get("LLMGAMES_ORACLE_RETRIES", 2, cast=int)),
        max_generation_attempts=int(_get("LLMGAMES_MAX_GENERATION_ATTEMPTS", 3, cast=int)),
        data_dir=_get("LLMGAMES_DATA_DIR", os.path.join(_repo_root(), "data", "games")),
        board_glyphs=str(_get("LLMGAMES_BOARD_GLYPHS", "unicode")).lower(),
        log_level=str(_get("LLMGAMES_LOG_LEVEL", "INFO")).upper(),
    )


SETTINGS = load_settings()
