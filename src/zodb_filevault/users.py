from BTrees.OOBTree import OOBTree
from zodb_filevault.exceptions import UserNotFound
from zodb_filevault.interfaces import IQuotaStore
from zodb_filevault.models import DailyUsage
from zodb_filevault.models import QuotaState
from zodb_filevault.models import UserAccount
from zope.interface import implementer

import logging


logger = logging.getLogger(__name__)

USERS_KEY = "filevault.users"
DAILY_KEY = "filevault.daily"


def bootstrap(root):
    if USERS_KEY not in root:
        root[USERS_KEY] = OOBTree()
    if DAILY_KEY not in root:
        root[DAILY_KEY] = OOBTree()


@implementer(IQuotaStore)
class UserStore:
    """User accounts, their quota state and the daily usage ledger.

    Daily entries live in one tree per ISO day so reports for a day
    never scan other days.
    """

    def __init__(self, root):
        self._users = root[USERS_KEY]
        self._daily = root[DAILY_KEY]

    def add_user(
        self,
        user_id,
        username,
        next_reset,
        max_capacity,
        is_admin=False,
        created_at=None,
        strict=False,
    ):
        if user_id in self._users:
            raise ValueError(f"User {user_id!r} already exists")
        account = UserAccount(
            user_id=user_id,
            username=username,
            quota=QuotaState(max_capacity, next_reset, strict=strict),
            is_admin=is_admin,
            created_at=created_at,
        )
        self._users[user_id] = account
        logger.info("Registered user %s (%s)", user_id, username)
        return account

    def get_user(self, user_id):
        account = self._users.get(user_id)
        if account is None:
            raise UserNotFound(user_id)
        return account

    def iter_user_ids(self):
        return iter(list(self._users.keys()))

    def find_quota_state(self, user_id):
        account = self._users.get(user_id)
        if account is None:
            return None
        return account.quota

    def update_quota_state(self, user_id, usage, next_reset):
        state = self.find_quota_state(user_id)
        if state is None:
            raise UserNotFound(user_id)
        state.usage = usage
        state.next_reset = next_reset

    def upsert_daily_entry(self, user_id, day, delta):
        day_key = day.isoformat()
        entries = self._daily.get(day_key)
        if entries is None:
            entries = self._daily[day_key] = OOBTree()
        entry = entries.get(user_id)
        if entry is None:
            entries[user_id] = entry = DailyUsage()
        entry.change(delta)
        return entry.usage_bytes

    def list_daily_entries(self, day):
        entries = self._daily.get(day.isoformat())
        if entries is None:
            return []
        result = []
        for user_id, entry in entries.items():
            account = self._users.get(user_id)
            username = account.username if account is not None else user_id
            result.append((username, entry.usage_bytes))
        return result
