"""Runtime settings read from the environment."""

import os
from pathlib import Path

from pydantic import BaseModel, field_validator

DEFAULT_STORE = "reconciler-store.json"
DEFAULT_LOG_LEVEL = "WARNING"

FALSE_VALUES = {"0", "false", "no", "off", ""}


class Settings(BaseModel):
    store: Path = Path(DEFAULT_STORE)  # JSON store file used by the CLI
    log_level: str = DEFAULT_LOG_LEVEL
    smart_defaults: bool = True  # enrich Postman / cURL imports

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or DEFAULT_LOG_LEVEL


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Build Settings from ``RECONCILER_*`` variables."""
    env = os.environ if environ is None else environ
    smart = env.get("RECONCILER_SMART_DEFAULTS")
    return Settings(
        store=Path(env.get("RECONCILER_STORE") or DEFAULT_STORE),
        log_level=env.get("RECONCILER_LOG_LEVEL") or DEFAULT_LOG_LEVEL,
        smart_defaults=True if smart is None else smart.strip().lower() not in FALSE_VALUES,
    )
