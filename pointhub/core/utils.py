from __future__ import annotations

import logging
import math
from typing import Any, Optional


def get_logger(name: str = "pointhub") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def check_unsigned(value: int, bits: int, name: str) -> int:
    """Return ``value`` if it fits an unsigned field of ``bits`` bits, else raise ValueError."""
    value = int(value)
    limit = (1 << bits) - 1
    if value < 0 or value > limit:
        raise ValueError(f"{name} {value} does not fit in {bits} bits (0..{limit})")
    return value


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def norm3(x: float, y: float, z: float) -> float:
    return math.sqrt(x * x + y * y + z * z)


def optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)
