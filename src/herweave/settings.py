"""Runtime settings: config and data locations from the environment.

Values are read from the process environment after loading a .env file
(if present) with python-dotenv:

    HERWEAVE_CONFIG_DIR   directory holding ledger_params.json
    HERWEAVE_DATA_DIR     directory for events.jsonl and state.json
    HERWEAVE_LOG_LEVEL    logging level name (default: WARNING)

Variables already set in the environment take precedence over .env.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG = ROOT / "config"
DEFAULT_DATA = ROOT / "data"


@dataclass(frozen=True)
class Settings:
    config_dir: Path = DEFAULT_CONFIG
    data_dir: Path = DEFAULT_DATA
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> Settings:
        load_dotenv(dotenv_path or ROOT / ".env")
        return cls(
            config_dir=Path(os.environ.get("HERWEAVE_CONFIG_DIR", DEFAULT_CONFIG)),
            data_dir=Path(os.environ.get("HERWEAVE_DATA_DIR", DEFAULT_DATA)),
            log_level=os.environ.get("HERWEAVE_LOG_LEVEL", "WARNING").upper(),
        )
