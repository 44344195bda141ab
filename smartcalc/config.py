"""
Settings for the calculator REPL.

Values come from (lowest to highest priority) field defaults, a .env file,
SMARTCALC_* environment variables, and explicit overrides such as command-line flags.
"""

import logging
import os
import sys
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

ENV_VARS: Dict[str, str] = {
    'prompt': 'SMARTCALC_PROMPT',
    'log_level': 'SMARTCALC_LOG_LEVEL',
    'history_file': 'SMARTCALC_HISTORY_FILE',
}

_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ConfigError(Exception):
    """Raised when settings fail validation."""
    pass


class CalculatorSettings(BaseModel):
    """REPL settings. history_file only stores typed input lines, never variable values."""
    prompt: str = ""
    log_level: str = "WARNING"
    history_file: Optional[str] = None

    @field_validator('log_level')
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level {v!r}; expected one of {', '.join(_LOG_LEVELS)}")
        return level

    @field_validator('history_file')
    @classmethod
    def expand_history_file(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return os.path.expanduser(v.strip())


def load_settings(overrides: Optional[Dict[str, Any]] = None,
                  dotenv_path: Optional[str] = None) -> CalculatorSettings:
    """
    Build settings from the environment.

    Args:
        overrides: Field values that win over the environment; None entries are ignored
        dotenv_path: Explicit .env file; by default python-dotenv searches for one

    Returns:
        Validated CalculatorSettings

    Raises:
        ConfigError: If any value fails validation
    """
    load_dotenv(dotenv_path)
    values: Dict[str, Any] = {}
    for field, var in ENV_VARS.items():
        raw = os.getenv(var)
        if raw is not None:
            values[field] = raw
    for field, value in (overrides or {}).items():
        if value is not None:
            values[field] = value
    try:
        return CalculatorSettings(**values)
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def configure_logging(settings: CalculatorSettings) -> None:
    # stderr keeps log records out of the printed results
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
