# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

import time
from typing import Callable, Optional

from ..errors import AdminCommandError, ReadinessTimeout


def await_condition(
    check: Callable[[], bool],
    *,
    max_attempts: int,
    interval: float,
    retry_on: tuple[type[Exception], ...] = (AdminCommandError,),
    on_attempt: Optional[Callable[[int, bool, Optional[Exception]], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "condition",
    phase: Optional[str] = None,
) -> None:
    """
    Fixed-cadence bounded poll.

    max_attempts: number of evaluations of `check`
    interval: seconds slept between two evaluations
    retry_on: exception types meaning "not ready yet"; others propagate
    on_attempt: callback(attempt, ready, exception)
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_exc: Optional[Exception] = None
    for attempt in range(1, max_attempts + 1):
        exc: Optional[Exception] = None
        try:
            ready = bool(check())
        except retry_on as e:
            ready = False
            exc = last_exc = e

        if on_attempt:
            on_attempt(attempt, ready, exc)
        if ready:
            return
        if attempt < max_attempts:
            sleep(interval)

    raise ReadinessTimeout(
        f"{description} not met after {max_attempts} attempts ({interval}s apart)",
        phase=phase,
    ) from last_exc
