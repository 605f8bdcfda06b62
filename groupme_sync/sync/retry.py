"""
Retry wrapper around a full reconciliation pass.

Each attempt produces a tagged outcome (PassSucceeded / PassFailed) and a
pure decision function maps (outcome, attempt, policy) to the next action
(Finish / RetryAfter / GiveUp). The runner only executes those actions, so
the backoff schedule and the failure handling can be tested without any
network calls or real sleeps.

The caller never sees an exception: after the last failed attempt the
runner reports the error to the notifier and returns a synthetic
zero-added, one-error SyncResult.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from groupme_sync.notify.discord import Notifier, NullNotifier
from groupme_sync.sync.extractor import ColumnMappingError
from groupme_sync.sync.result import SyncResult

DEFAULT_BASE_DELAY = 2.0  # seconds
DEFAULT_MAX_RETRIES = 3

# Configuration defects; retrying cannot fix them
NON_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (ColumnMappingError,)

logger = logging.getLogger(__name__)


class PassRunner(Protocol):
    """Anything that can execute one reconciliation pass."""

    def run(self) -> SyncResult: ...


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff policy.

    With base_delay=2 and max_retries=3 the waits are 2s, 4s, 8s, for at
    most four attempts in total.
    """

    base_delay: float = DEFAULT_BASE_DELAY
    max_retries: int = DEFAULT_MAX_RETRIES

    def __post_init__(self) -> None:
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    def delay_for(self, retry_number: int) -> float:
        """Delay before retry number `retry_number` (1-based)."""
        return self.base_delay * (2 ** (retry_number - 1))

    def schedule(self) -> list[float]:
        """All delays, in order."""
        return [self.delay_for(n) for n in range(1, self.max_retries + 1)]


NO_RETRY = RetryPolicy(max_retries=0)


# Attempt outcomes


@dataclass(frozen=True)
class PassSucceeded:
    result: SyncResult


@dataclass(frozen=True)
class PassFailed:
    error: Exception

    @property
    def retryable(self) -> bool:
        return not isinstance(self.error, NON_RETRYABLE_ERRORS)


AttemptOutcome = Union[PassSucceeded, PassFailed]


# Runner actions


@dataclass(frozen=True)
class Finish:
    result: SyncResult


@dataclass(frozen=True)
class RetryAfter:
    delay: float
    error: Exception


@dataclass(frozen=True)
class GiveUp:
    error: Exception


RetryAction = Union[Finish, RetryAfter, GiveUp]


def attempt_pass(runner: PassRunner) -> AttemptOutcome:
    """Run one pass and capture its outcome."""
    try:
        return PassSucceeded(runner.run())
    except Exception as e:
        return PassFailed(e)


def decide(outcome: AttemptOutcome, attempt: int, policy: RetryPolicy) -> RetryAction:
    """
    Choose what to do after an attempt.

    Args:
        outcome: Outcome of the attempt
        attempt: 1-based number of the attempt that produced `outcome`
        policy: Backoff policy

    Returns:
        Finish on success, RetryAfter while retries remain, else GiveUp
    """
    if isinstance(outcome, PassSucceeded):
        return Finish(outcome.result)
    if outcome.retryable and attempt <= policy.max_retries:
        return RetryAfter(policy.delay_for(attempt), outcome.error)
    return GiveUp(outcome.error)


class SyncRunner:
    """
    Runs reconciliation passes with retry and notification.

    Usage:
        runner = SyncRunner(reconciler, notifier=DiscordNotifier(url))
        result = runner.run()            # with retries
        result = runner.run_once()       # single attempt
    """

    def __init__(
        self,
        reconciler: PassRunner,
        notifier: Optional[Notifier] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.reconciler = reconciler
        self.notifier = notifier or NullNotifier()
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def run(self) -> SyncResult:
        """Run a pass under the retry policy. Never raises."""
        return self._run(self.policy)

    def run_once(self) -> SyncResult:
        """Run a single attempt with the same reporting. Never raises."""
        return self._run(NO_RETRY)

    def _run(self, policy: RetryPolicy) -> SyncResult:
        attempt = 1
        logger.info("Starting sync job...")

        while True:
            outcome = attempt_pass(self.reconciler)
            action = decide(outcome, attempt, policy)

            if isinstance(action, Finish):
                self._report_success(action.result)
                return action.result

            if isinstance(action, RetryAfter):
                logger.warning(
                    f"Sync attempt {attempt} failed: {action.error}; "
                    f"retrying in {action.delay:.1f}s "
                    f"(retry {attempt}/{policy.max_retries})"
                )
                self._sleep(action.delay)
                attempt += 1
                continue

            return self._report_failure(action.error, attempt)

    def _report_success(self, result: SyncResult) -> None:
        logger.info(f"Sync complete: {result.summary()}")
        try:
            self.notifier.notify_success(result.counts())
        except Exception as e:
            logger.warning(f"Failed to send success notification: {e}")

    def _report_failure(self, error: Exception, attempts: int) -> SyncResult:
        if isinstance(error, NON_RETRYABLE_ERRORS):
            logger.error(f"Sync failed (not retried): {error}")
        else:
            logger.error(f"Sync failed after {attempts} attempt(s): {error}")

        try:
            self.notifier.notify_error(error)
        except Exception as e:
            logger.warning(f"Failed to send error notification: {e}")

        return SyncResult.failure(error)
