"""
Safe Compute — Result Type, Deadlines and the Error-Collapsing Boundary.

Every repository read made by the aggregator and the activity monitor goes
through this module:

- FetchRunner runs independent reads concurrently on a thread pool and
  enforces a per-fetch deadline. A missed deadline becomes
  RepositoryError(kind=TIMEOUT); any exception leaking from a repository
  implementation becomes RepositoryError(kind=BACKEND).
- attempt() turns a computation into an Ok / Err result.
- safe_compute() is the single place where an Err collapses into a
  fallback value, after being logged.
"""

import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, TypeVar, Union

import structlog

from orderwatch.exceptions import RepositoryError
from orderwatch.models.enums import RepositoryErrorKind

logger = structlog.get_logger()

T = TypeVar("T")


class Ok:
    """Successful computation."""

    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap_or(self, default: Any) -> Any:
        return self.value

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


class Err:
    """Failed computation carrying the repository error."""

    __slots__ = ("error",)

    def __init__(self, error: RepositoryError):
        self.error = error

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap_or(self, default: Any) -> Any:
        return default

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Union[Ok, Err]


def attempt(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Result:
    """
    Run fn and capture RepositoryError as Err.

    Other exceptions are programming errors and propagate.
    """
    try:
        return Ok(fn(*args, **kwargs))
    except RepositoryError as e:
        return Err(e)


def safe_compute(
    fn: Callable[[], T],
    fallback: Callable[[RepositoryError], T],
    operation: str,
) -> T:
    """
    Run a computation, collapsing repository failures into a fallback.

    Args:
        fn: Zero-argument computation
        fallback: Builds the value returned on failure from the error
        operation: Name used in logs

    Returns:
        fn's result, or fallback(error) when fn raised RepositoryError
    """
    result = attempt(fn)
    if result.is_ok:
        return result.value

    error = result.error
    logger.error(
        "safe_compute_fallback",
        operation=operation,
        error_kind=error.kind.value,
        failed_operation=error.operation,
        error=str(error),
    )
    return fallback(error)


class FetchRunner:
    """
    Concurrent repository reads with a bounded deadline per fetch.

    A fetch that misses its deadline keeps its worker thread until the
    underlying call returns; the caller is released immediately.

    Attributes:
        timeout_seconds: Deadline for each fetch, measured from submission
        max_workers: Thread pool size
    """

    def __init__(self, timeout_seconds: float = 5.0, max_workers: int = 3):
        self.timeout_seconds = timeout_seconds
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="orderwatch-fetch"
        )

    def submit(self, operation: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> "PendingFetch":
        """Start a fetch; returns a handle whose result() enforces the deadline."""
        deadline = time.monotonic() + self.timeout_seconds
        future = self._executor.submit(fn, *args, **kwargs)
        return PendingFetch(operation, future, deadline, self.timeout_seconds)

    def run(self, operation: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Submit a single fetch and wait for it."""
        return self.submit(operation, fn, *args, **kwargs).result()

    def shutdown(self) -> None:
        """Stop accepting fetches; does not wait for hung calls."""
        self._executor.shutdown(wait=False)


class PendingFetch:
    """A submitted fetch."""

    def __init__(self, operation: str, future: Future, deadline: float, timeout_seconds: float):
        self.operation = operation
        self._future = future
        self._deadline = deadline
        self._timeout_seconds = timeout_seconds

    def result(self) -> Any:
        """
        Wait for the fetch until its deadline.

        Raises:
            RepositoryError: TIMEOUT if the deadline passed, BACKEND if the
                repository raised anything other than RepositoryError
        """
        remaining = max(0.0, self._deadline - time.monotonic())
        try:
            return self._future.result(timeout=remaining)
        except FutureTimeoutError as e:
            self._future.cancel()
            logger.warning(
                "repository_fetch_timeout",
                operation=self.operation,
                timeout_seconds=self._timeout_seconds,
            )
            raise RepositoryError(
                f"{self.operation} exceeded {self._timeout_seconds}s deadline",
                kind=RepositoryErrorKind.TIMEOUT,
                operation=self.operation,
            ) from e
        except RepositoryError:
            raise
        except Exception as e:
            raise RepositoryError(
                f"{self.operation} failed: {e}",
                kind=RepositoryErrorKind.BACKEND,
                operation=self.operation,
            ) from e
