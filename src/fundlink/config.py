"""Runtime settings loaded from the environment (and an optional .env file)."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_SHEET_ID = "1xVFw8pFrJzcxD8CH7ainimPKD6GW9tn1bb8ggHYUfRs"
DEFAULT_SHEET_NAME = "Sheet1"
DEFAULT_DATA_DIR = Path.home() / ".fundlink"
DEFAULT_TIMEOUT = 15.0

SHEETS_URL_TEMPLATE = (
    "https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq"
    "?tqx=out:json&sheet={sheet_name}"
)


@dataclass(frozen=True)
class Settings:
    """Feed location, storage directory and HTTP timeout."""
    sheet_id: str = DEFAULT_SHEET_ID
    sheet_name: str = DEFAULT_SHEET_NAME
    data_dir: Path = DEFAULT_DATA_DIR
    timeout: float = DEFAULT_TIMEOUT

    @property
    def sheets_url(self) -> str:
        return SHEETS_URL_TEMPLATE.format(sheet_id=self.sheet_id, sheet_name=self.sheet_name)

    @property
    def durable_dir(self) -> Path:
        return self.data_dir / "local"

    @property
    def session_dir(self) -> Path:
        return self.data_dir / "session"


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Build Settings from FUNDLINK_* environment variables.

    Args:
        env_file: Optional .env path; by default python-dotenv searches
            upward from the working directory.

    Raises:
        ConfigError: If FUNDLINK_HTTP_TIMEOUT is not a positive number.
    """
    load_dotenv(dotenv_path=env_file)

    raw_timeout = os.getenv("FUNDLINK_HTTP_TIMEOUT")
    timeout = DEFAULT_TIMEOUT
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ConfigError(f"FUNDLINK_HTTP_TIMEOUT must be a number, got {raw_timeout!r}")
        if timeout <= 0:
            raise ConfigError(f"FUNDLINK_HTTP_TIMEOUT must be positive, got {timeout}")

    data_dir = os.getenv("FUNDLINK_DATA_DIR")

    return Settings(
        sheet_id=os.getenv("FUNDLINK_SHEET_ID") or DEFAULT_SHEET_ID,
        sheet_name=os.getenv("FUNDLINK_SHEET_NAME") or DEFAULT_SHEET_NAME,
        data_dir=Path(data_dir).expanduser() if data_dir else DEFAULT_DATA_DIR,
        timeout=timeout,
    )
