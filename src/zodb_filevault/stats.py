from zodb_filevault.exceptions import Forbidden

import logging


logger = logging.getLogger(__name__)

MEGABYTE = 1024 * 1024


class UsageStats:
    """Admin-only view of the daily usage ledger."""

    def __init__(self, store, ledger):
        self.store = store
        self.ledger = ledger

    def _require_admin(self, user_id):
        tm = self.ledger.transaction_manager
        tm.begin()
        try:
            account = self.store.get_user(user_id)
            is_admin = account.is_admin
        finally:
            tm.abort()
        if not is_admin:
            logger.warning(
                "User %s requested usage stats without admin rights", user_id
            )
            raise Forbidden("Admin access required")

    def daily_usage(self, requesting_user_id, day=None):
        self._require_admin(requesting_user_id)
        return [
            {
                "username": username,
                "usage_bytes": usage_bytes,
                "usage_mb": usage_bytes / MEGABYTE,
            }
            for username, usage_bytes in self.ledger.daily_snapshot(day)
        ]
