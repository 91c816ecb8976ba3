from __future__ import annotations

import threading
import time
from collections import deque
from enum import Enum
from typing import Callable


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class OperationKind(str, Enum):
    QUOTE = "QUOTE"
    BATCH = "BATCH"
    COMPANY_SEARCH = "COMPANY_SEARCH"


class Outcome(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    TIMEOUT = "TIMEOUT"


class CircuitBreaker:
    """Failure-rate circuit breaker for one kind of upstream call.

    CLOSED keeps a rolling window of outcomes and trips to OPEN once the
    window holds ``request_volume_threshold`` outcomes with an error share of
    at least ``error_threshold_pct``. OPEN denies everything until
    ``sleep_window_sec`` has passed, then lets a single trial call through
    (HALF_OPEN). The trial's outcome alone decides CLOSED or OPEN.

    The lock only covers state bookkeeping; callers run the upstream call
    outside of it.
    """

    def __init__(
        self,
        name: str,
        *,
        request_volume_threshold: int = 20,
        error_threshold_pct: float = 50.0,
        rolling_window_sec: float = 10.0,
        sleep_window_sec: float = 5.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if request_volume_threshold < 1:
            raise ValueError("request_volume_threshold must be >= 1")
        self.name = name
        self.request_volume_threshold = request_volume_threshold
        self.error_threshold_pct = error_threshold_pct
        self.rolling_window_sec = rolling_window_sec
        self.sleep_window_sec = sleep_window_sec
        self.clock = clock or time.monotonic

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._window: deque[tuple[float, bool]] = deque()
        self._window_errors = 0
        self._opened_at: float | None = None
        # bumped on every transition; admissions carry the value they saw
        self._generation = 0

        self.trips = 0
        self.denied = 0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def _prune(self, now: float) -> None:
        horizon = now - self.rolling_window_sec
        while self._window and self._window[0][0] <= horizon:
            _, failed = self._window.popleft()
            if failed:
                self._window_errors -= 1

    def _clear_window(self) -> None:
        self._window.clear()
        self._window_errors = 0

    def _error_pct(self) -> float:
        if not self._window:
            return 0.0
        return self._window_errors * 100.0 / len(self._window)

    def _transition(self, new_state: CircuitState, now: float) -> None:
        old_state = self._state
        self._state = new_state
        self._generation += 1
        if new_state is CircuitState.OPEN:
            self._opened_at = now
            if old_state is CircuitState.CLOSED:
                self.trips += 1
        elif new_state is CircuitState.CLOSED:
            self._clear_window()
            self._opened_at = None
        print(
            f"[BREAKER][transition] name={self.name} from={old_state.value} to={new_state.value}",
            flush=True,
        )

    def admit(self) -> int | None:
        """Return an admission ticket for one call, or None when denied.

        The ticket is handed back to ``record_outcome`` so results of calls
        admitted under an earlier state cannot settle the current one.
        """
        now = self.clock()
        with self._lock:
            if self._state is CircuitState.CLOSED:
                return self._generation
            if self._state is CircuitState.OPEN:
                if self._opened_at is not None and now - self._opened_at >= self.sleep_window_sec:
                    # the single trial call
                    self._transition(CircuitState.HALF_OPEN, now)
                    return self._generation
                self.denied += 1
                return None
            # HALF_OPEN: the trial is still in flight
            self.denied += 1
            return None

    def should_execute(self) -> bool:
        return self.admit() is not None

    def record_outcome(self, outcome: Outcome, ticket: int | None = None) -> None:
        now = self.clock()
        failed = outcome is not Outcome.SUCCESS
        with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                if ticket != self._generation:
                    return
                self._transition(CircuitState.OPEN if failed else CircuitState.CLOSED, now)
                return
            if self._state is CircuitState.OPEN:
                # late result from a call admitted before the trip
                return
            if ticket is not None and ticket != self._generation:
                return
            self._window.append((now, failed))
            if failed:
                self._window_errors += 1
            self._prune(now)
            if (
                failed
                and len(self._window) >= self.request_volume_threshold
                and self._error_pct() >= self.error_threshold_pct
            ):
                self._transition(CircuitState.OPEN, now)

    def metrics(self) -> dict[str, int | float | str]:
        now = self.clock()
        with self._lock:
            self._prune(now)
            return {
                "state": self._state.value,
                "window_count": len(self._window),
                "window_errors": self._window_errors,
                "error_pct": round(self._error_pct(), 2),
                "trips": self.trips,
                "denied": self.denied,
            }


class CircuitBreakerRegistry:
    """One independent breaker per operation kind, created up front."""

    def __init__(self, breaker_factory: Callable[[str], CircuitBreaker] | None = None) -> None:
        factory = breaker_factory or (lambda name: CircuitBreaker(name))
        self._breakers = {kind: factory(kind.value) for kind in OperationKind}

    def get(self, kind: OperationKind) -> CircuitBreaker:
        return self._breakers[kind]

    def admit(self, kind: OperationKind) -> int | None:
        return self._breakers[kind].admit()

    def should_execute(self, kind: OperationKind) -> bool:
        return self._breakers[kind].should_execute()

    def record_outcome(self, kind: OperationKind, outcome: Outcome, ticket: int | None = None) -> None:
        self._breakers[kind].record_outcome(outcome, ticket)

    def metrics(self) -> dict[str, dict]:
        return {kind.value: breaker.metrics() for kind, breaker in self._breakers.items()}
