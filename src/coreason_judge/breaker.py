# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judge

import threading
import time
from collections.abc import Callable
from enum import Enum

from loguru import logger


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Failure policy for an unreliable transport.

    Closed: requests flow and consecutive failures are counted. After
    ``failure_threshold`` failures the breaker opens and rejects requests for
    ``reset_timeout`` seconds, then moves to half-open and admits a single trial
    request. A successful trial closes the breaker, a failed one reopens it.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        reset_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "remote-executor",
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._state = BreakerState.CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> BreakerState:
        with self._lock:
            return self._current_state()

    def _current_state(self) -> BreakerState:
        if self._state == BreakerState.OPEN and self._clock() - self._opened_at >= self.reset_timeout:
            self._state = BreakerState.HALF_OPEN
            self._trial_in_flight = False
            logger.info(f"Circuit breaker {self.name} half-open, admitting a trial request")
        return self._state

    def allow_request(self) -> bool:
        """Whether a request may be attempted now. Claims the trial slot when half-open."""
        with self._lock:
            state = self._current_state()
            if state == BreakerState.CLOSED:
                return True
            if state == BreakerState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            if self._state != BreakerState.CLOSED:
                logger.info(f"Circuit breaker {self.name} closed")
            self._state = BreakerState.CLOSED
            self._failures = 0
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            state = self._current_state()
            self._failures += 1
            if state == BreakerState.HALF_OPEN or self._failures >= self.failure_threshold:
                if state != BreakerState.OPEN:
                    logger.warning(f"Circuit breaker {self.name} opened after {self._failures} failure(s)")
                self._state = BreakerState.OPEN
                self._opened_at = self._clock()
                self._trial_in_flight = False

    def release_trial(self) -> None:
        """Free the half-open trial slot without recording an outcome (e.g. the attempt was cancelled)."""
        with self._lock:
            self._trial_in_flight = False
