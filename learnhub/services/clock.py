from __future__ import annotations

import time
from collections.abc import Callable

# Services take a clock so tests can pin timestamps.
Clock = Callable[[], int]


def epoch_now() -> int:
    return int(time.time())
