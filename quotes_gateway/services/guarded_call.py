from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Tuple, Type, TypeVar

from quotes_gateway.errors import SymbolNotFoundError
from quotes_gateway.services.circuit_breaker import CircuitBreakerRegistry, OperationKind, Outcome

T = TypeVar("T")


class GuardedExecutor:
    """Runs upstream calls behind the per-kind breaker with a per-call deadline.

    Exceptions listed in ``ignored_exceptions`` mean the provider answered,
    so they are accounted as a success and re-raised to the caller. Anything
    else raised by the call, a timeout, or a denied breaker yields
    ``fallback()`` instead.
    """

    def __init__(
        self,
        breakers: CircuitBreakerRegistry,
        *,
        max_workers: int = 10,
        ignored_exceptions: Tuple[Type[BaseException], ...] = (SymbolNotFoundError,),
    ) -> None:
        self.breakers = breakers
        self.max_workers = max_workers
        self.ignored_exceptions = ignored_exceptions
        self._pool_lock = threading.Lock()
        self._pool: ThreadPoolExecutor | None = None

    def _get_pool(self) -> ThreadPoolExecutor:
        # created on demand so a shut down executor serves again after restart
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="upstream"
                )
            return self._pool

    def _run(self, call: Callable[[], T], timeout_sec: float | None) -> T:
        if timeout_sec is None:
            return call()
        future = self._get_pool().submit(call)
        try:
            return future.result(timeout=timeout_sec)
        except FutureTimeoutError:
            # the worker keeps running; its result is discarded
            future.cancel()
            raise

    def execute(
        self,
        kind: OperationKind,
        call: Callable[[], T],
        *,
        fallback: Callable[[], T],
        timeout_sec: float | None,
    ) -> T:
        ticket = self.breakers.admit(kind)
        if ticket is None:
            print(f"[{kind.value}][breaker_open] fallback=1", flush=True)
            return fallback()

        try:
            result = self._run(call, timeout_sec)
        except FutureTimeoutError:
            self.breakers.record_outcome(kind, Outcome.TIMEOUT, ticket)
            print(f"[{kind.value}][upstream_timeout] timeout_sec={timeout_sec} fallback=1", flush=True)
            return fallback()
        except self.ignored_exceptions:
            self.breakers.record_outcome(kind, Outcome.SUCCESS, ticket)
            raise
        except Exception as exc:
            self.breakers.record_outcome(kind, Outcome.FAILURE, ticket)
            print(f"[{kind.value}][upstream_error] error={exc!r} fallback=1", flush=True)
            return fallback()

        self.breakers.record_outcome(kind, Outcome.SUCCESS, ticket)
        return result

    def shutdown(self) -> None:
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=False, cancel_futures=True)
