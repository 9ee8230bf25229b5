import os
from dataclasses import dataclass
from typing import Optional

_DOTENV_LOADED = False


def _load_dotenv_once(path: str = ".env") -> None:
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    _DOTENV_LOADED = True
    if not os.path.exists(path):
        return
    with open(path, "r", encoding="utf-8") as f:
        for raw_line in f:
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            os.environ.setdefault(key, value)


def get_env(name: str) -> Optional[str]:
    _load_dotenv_once()
    v = os.getenv(name)
    return v if v and str(v).strip() else None


def _get_env_float(key: str, default: float) -> float:
    try:
        return float(get_env(key) or default)
    except ValueError:
        return default


def _get_env_int(key: str, default: int) -> int:
    try:
        return int(get_env(key) or default)
    except ValueError:
        return default


def _get_env_bool(key: str, default: bool) -> bool:
    v = get_env(key)
    if v is None:
        return default
    return v.strip().lower() not in ("false", "0", "no", "off")


@dataclass(frozen=True)
class Settings:
    """
    Tunable thresholds for assignment and deduplication.
    No logic here, only parameters.
    """

    # --- Assignment ---
    max_distance_km: float = 20.0

    # --- Deduplication ---
    duplicate_radius_m: float = 20.0
    duplicate_window_hours: float = 72.0
    duplicate_threshold: float = 0.90
    duplicate_max_candidates: int = 10
    duplicate_sort_by_distance: bool = True
    deduplication_enabled: bool = True

    # --- Model gateway ---
    model: str = "llama3:8b"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    timeout_seconds: float = 120.0

    # --- Batch ---
    batch_delay_seconds: float = 0.5

    def validate(self) -> None:
        if self.max_distance_km <= 0:
            raise ValueError("max_distance_km must be > 0")
        if self.duplicate_radius_m <= 0:
            raise ValueError("duplicate_radius_m must be > 0")
        if self.duplicate_window_hours <= 0:
            raise ValueError("duplicate_window_hours must be > 0")
        if not 0.0 <= self.duplicate_threshold <= 1.0:
            raise ValueError("duplicate_threshold must be within [0, 1]")
        if self.duplicate_max_candidates < 1:
            raise ValueError("duplicate_max_candidates must be >= 1")
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.batch_delay_seconds < 0:
            raise ValueError("batch_delay_seconds must be >= 0")


def load_settings() -> Settings:
    """Build Settings from the environment (and a local .env, loaded once)."""
    defaults = Settings()
    s = Settings(
        max_distance_km=_get_env_float("ASSIGNMENT_MAX_DISTANCE_KM", defaults.max_distance_km),
        duplicate_radius_m=_get_env_float("DUPLICATE_RADIUS_METERS", defaults.duplicate_radius_m),
        duplicate_window_hours=_get_env_float("DUPLICATE_TIME_WINDOW_HOURS", defaults.duplicate_window_hours),
        duplicate_threshold=_get_env_float("DUPLICATE_CONFIDENCE_THRESHOLD", defaults.duplicate_threshold),
        duplicate_max_candidates=_get_env_int("DUPLICATE_MAX_CANDIDATES", defaults.duplicate_max_candidates),
        duplicate_sort_by_distance=_get_env_bool("DUPLICATE_SORT_BY_DISTANCE", defaults.duplicate_sort_by_distance),
        deduplication_enabled=_get_env_bool("ENABLE_DEDUPLICATION", defaults.deduplication_enabled),
        model=get_env("CHAT_MODEL") or defaults.model,
        api_key=get_env("LLMOD_API_KEY"),
        base_url=get_env("LLMOD_BASE_URL"),
        max_retries=_get_env_int("LLM_MAX_RETRIES", defaults.max_retries),
        backoff_base_seconds=_get_env_float("LLM_BACKOFF_BASE_SECONDS", defaults.backoff_base_seconds),
        timeout_seconds=_get_env_float("LLM_TIMEOUT_SECONDS", defaults.timeout_seconds),
        batch_delay_seconds=_get_env_float("BATCH_DELAY_SECONDS", defaults.batch_delay_seconds),
    )
    s.validate()
    return s
