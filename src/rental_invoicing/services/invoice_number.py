"""Invoice number generation."""

from __future__ import annotations

import random
import time
from collections.abc import Callable

DEFAULT_PREFIX = "INV"


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def generate_invoice_number(
    prefix: str = DEFAULT_PREFIX,
    *,
    clock: Callable[[], int] = _epoch_millis,
    rng: random.Random | None = None,
) -> str:
    """Build "{prefix}-{last 6 digits of epoch millis}-{3-digit random}".

    Numbers are human-readable, not guaranteed unique; the caller checks
    the unique invoice_number column and retries on a clash.
    """
    millis = str(clock())[-6:].rjust(6, "0")
    suffix = (rng or random).randint(0, 999)
    return f"{prefix}-{millis}-{suffix:03d}"
