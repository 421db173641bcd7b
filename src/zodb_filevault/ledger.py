"""Per-user rolling storage quota and the daily usage ledger.

Each user's cycle is anchored on their own registration instant and moves
forward one calendar month at a time; there is no global reset date.
Rollover is applied lazily, right before any capacity check or usage
change observes the user's state.
"""

from dataclasses import dataclass
from datetime import datetime
from datetime import timezone
from zodb_filevault.exceptions import QuotaExceeded
from zodb_filevault.exceptions import UserNotFound

import calendar
import logging


logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 5 * 1024 * 1024 * 1024


def utcnow():
    return datetime.now(timezone.utc)


def add_one_month(instant):
    """Return instant moved to the same day next month.

    The day is clamped to the last day of the target month (Jan 31 becomes
    Feb 28 or 29); time of day and tzinfo are kept.
    """
    year = instant.year
    month = instant.month + 1
    if month > 12:
        month = 1
        year += 1
    day = min(instant.day, calendar.monthrange(year, month)[1])
    return instant.replace(year=year, month=month, day=day)


def next_reset_after(previous, now):
    """First whole-month step from previous that lies strictly after now."""
    instant = previous if previous is not None else now
    while instant <= now:
        instant = add_one_month(instant)
    return instant


@dataclass(frozen=True)
class QuotaUsage:
    user_id: str
    usage: int
    capacity: int
    next_reset: datetime

    @property
    def remaining(self):
        return self.capacity - self.usage


class QuotaLedger:
    """Quota checks and usage bookkeeping over a UserStore.

    Every public method is one unit of work in ``transaction_manager``,
    retried on ZODB write conflicts. Concurrent updates for the same user
    are merged by ``QuotaState._p_resolveConflict``; the check in
    ``check_capacity`` and the later ``record_usage`` are separate units,
    so parallel uploads may overshoot capacity by up to one file. With
    ``strict`` set, ``record_usage`` re-checks capacity inside its own
    unit and refuses to go over.
    """

    def __init__(
        self,
        store,
        transaction_manager,
        clock=utcnow,
        default_capacity=DEFAULT_CAPACITY,
        strict=False,
        retries=3,
    ):
        self.store = store
        self.transaction_manager = transaction_manager
        self.clock = clock
        self.default_capacity = default_capacity
        self.strict = strict
        self.retries = retries

    def _state(self, user_id):
        state = self.store.find_quota_state(user_id)
        if state is None:
            raise UserNotFound(user_id)
        return state

    def _rollover(self, user_id, state, now):
        previous = state.next_reset
        if previous is not None and previous > now:
            return False
        next_reset = next_reset_after(previous, now)
        self.store.update_quota_state(user_id, 0, next_reset)
        logger.info(
            "Quota cycle reset for user %s, next reset at %s",
            user_id,
            next_reset.isoformat(),
        )
        return True

    def register_user(self, user_id, username, is_admin=False, max_capacity=None):
        """Create an account whose first cycle ends one month from now."""
        now = self.clock()
        for attempt in self.transaction_manager.attempts(self.retries):
            with attempt:
                account = self.store.add_user(
                    user_id,
                    username,
                    next_reset=add_one_month(now),
                    max_capacity=(
                        self.default_capacity if max_capacity is None else max_capacity
                    ),
                    is_admin=is_admin,
                    created_at=now,
                    strict=self.strict,
                )
        return account

    def rollover_if_due(self, user_id):
        """Reset the user's cycle if its end has passed.

        Returns True if a reset happened. Calling it again right away is a
        no-op.
        """
        for attempt in self.transaction_manager.attempts(self.retries):
            with attempt:
                reset = self._rollover(user_id, self._state(user_id), self.clock())
        return reset

    def check_capacity(self, user_id, candidate_bytes):
        for attempt in self.transaction_manager.attempts(self.retries):
            with attempt:
                state = self._state(user_id)
                self._rollover(user_id, state, self.clock())
                fits = state.usage + candidate_bytes <= state.max_capacity
        return fits

    def record_usage(self, user_id, delta_bytes):
        """Apply delta_bytes to the current cycle and to today's entry.

        Negative deltas (deletions) are applied as-is; usage is not
        clamped at zero.
        """
        for attempt in self.transaction_manager.attempts(self.retries):
            with attempt:
                now = self.clock()
                state = self._state(user_id)
                self._rollover(user_id, state, now)
                usage = state.usage + delta_bytes
                if self.strict and delta_bytes > 0 and usage > state.max_capacity:
                    raise QuotaExceeded(
                        user_id, delta_bytes, state.usage, state.max_capacity
                    )
                # Conflict resolution reads the mode of the writing side.
                state.strict = self.strict
                self.store.update_quota_state(user_id, usage, state.next_reset)
                self.store.upsert_daily_entry(user_id, now.date(), delta_bytes)
        return usage

    def usage(self, user_id):
        for attempt in self.transaction_manager.attempts(self.retries):
            with attempt:
                state = self._state(user_id)
                self._rollover(user_id, state, self.clock())
                summary = QuotaUsage(
                    user_id=user_id,
                    usage=state.usage,
                    capacity=state.max_capacity,
                    next_reset=state.next_reset,
                )
        return summary

    def reset_due_quotas(self):
        """Roll every registered user whose cycle has ended.

        Each user is committed separately. Returns the number of resets.
        """
        self.transaction_manager.begin()
        try:
            user_ids = list(self.store.iter_user_ids())
        finally:
            self.transaction_manager.abort()
        count = 0
        for user_id in user_ids:
            if self.rollover_if_due(user_id):
                count += 1
        logger.info("Quota sweep reset %d user(s)", count)
        return count

    def daily_snapshot(self, day=None):
        """Return (username, usage_bytes) for day, largest first, zeros dropped."""
        if day is None:
            day = self.clock().date()
        self.transaction_manager.begin()
        try:
            entries = self.store.list_daily_entries(day)
        finally:
            self.transaction_manager.abort()
        rows = [(name, used) for name, used in entries if used > 0]
        rows.sort(key=lambda row: row[1], reverse=True)
        return rows
