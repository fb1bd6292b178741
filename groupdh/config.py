"""
Runtime settings read from the environment (and an optional .env file).

Expected keys (all optional):

    GROUPDH_MIN_MODULUS_BITS=2048
    GROUPDH_PRIVATE_KEY_BYTES=32
    GROUPDH_PARTICIPANT_TIMEOUT=5.0
    GROUPDH_LOG_LEVEL=WARNING
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load .env so `python -m groupdh.cli` picks up local overrides.
load_dotenv()

DEFAULT_MIN_MODULUS_BITS = 2048
DEFAULT_PRIVATE_KEY_BYTES = 32
DEFAULT_PARTICIPANT_TIMEOUT = 5.0
DEFAULT_LOG_LEVEL = "WARNING"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    min_modulus_bits: int = DEFAULT_MIN_MODULUS_BITS
    private_key_bytes: int = DEFAULT_PRIVATE_KEY_BYTES
    participant_timeout: float = DEFAULT_PARTICIPANT_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL


def _positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _positive_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_settings() -> Settings:
    """
    Build Settings from environment variables.

    Raises:
        ValueError: If a numeric variable is malformed or not positive,
        or the log level is not a known logging level name.
    """
    log_level = os.getenv("GROUPDH_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"GROUPDH_LOG_LEVEL is not a logging level: {log_level!r}")

    return Settings(
        min_modulus_bits=_positive_int("GROUPDH_MIN_MODULUS_BITS", DEFAULT_MIN_MODULUS_BITS),
        private_key_bytes=_positive_int("GROUPDH_PRIVATE_KEY_BYTES", DEFAULT_PRIVATE_KEY_BYTES),
        participant_timeout=_positive_float(
            "GROUPDH_PARTICIPANT_TIMEOUT", DEFAULT_PARTICIPANT_TIMEOUT
        ),
        log_level=log_level,
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
