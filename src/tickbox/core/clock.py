# src/tickbox/core/clock.py

from __future__ import annotations

import time


class SystemClock:
    """Wall clock. Everything that stamps a row goes through a Clock."""

    def now(self) -> float:
        return time.time()
