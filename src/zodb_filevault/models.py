from persistent import Persistent
from ZODB.POSException import ConflictError
from zodb_filevault.results import FileInfo


class FileRecord(Persistent):
    """Binds a file id to the one provider and key holding its bytes.

    Written once after a successful upload and never modified.
    """

    def __init__(
        self,
        file_id,
        owner_id,
        key,
        provider_id,
        original_name,
        size,
        content_type,
        created_at,
        location=None,
    ):
        self.file_id = file_id
        self.owner_id = owner_id
        self.key = key
        self.provider_id = provider_id
        self.original_name = original_name
        self.size = size
        self.content_type = content_type
        self.created_at = created_at
        self.location = location

    @property
    def name(self):
        """Object name inside the provider, without the owner namespace."""
        return self.key.rsplit("/", 1)[-1]

    def info(self):
        return FileInfo(
            file_id=self.file_id,
            owner_id=self.owner_id,
            key=self.key,
            provider_id=self.provider_id,
            original_name=self.original_name,
            size=self.size,
            content_type=self.content_type,
            created_at=self.created_at,
            location=self.location,
        )

    def __repr__(self):
        return (
            f"<FileRecord {self.file_id} owner={self.owner_id} "
            f"{self.provider_id}:{self.key}>"
        )


class QuotaState(Persistent):
    """Rolling monthly usage counter for one user.

    Concurrent transactions touching the same user are merged by
    ``_p_resolveConflict`` instead of failing outright. ``strict`` is
    rewritten on every usage update, so it follows the current setting.
    """

    def __init__(self, max_capacity, next_reset, usage=0, strict=False):
        self.max_capacity = max_capacity
        self.next_reset = next_reset
        self.usage = usage
        self.strict = strict

    @property
    def remaining(self):
        return self.max_capacity - self.usage

    def _p_resolveConflict(self, old, committed, new):
        if committed["next_reset"] != new["next_reset"]:
            raise ConflictError("quota cycles diverged")

        merged = dict(committed)
        if new["max_capacity"] != old["max_capacity"]:
            if committed["max_capacity"] not in (
                old["max_capacity"],
                new["max_capacity"],
            ):
                raise ConflictError("quota capacity changed concurrently")
            merged["max_capacity"] = new["max_capacity"]

        # Both sides observed the same stale cycle; if it rolled over, both
        # counted from zero.
        base = 0 if new["next_reset"] != old["next_reset"] else old["usage"]
        new_delta = new["usage"] - base
        merged["usage"] = committed["usage"] + new_delta

        if (
            new.get("strict")
            and new_delta > 0
            and merged["usage"] > merged["max_capacity"]
        ):
            raise ConflictError("merged usage exceeds capacity")
        return merged


class UserAccount(Persistent):

    def __init__(self, user_id, username, quota, is_admin=False, created_at=None):
        self.user_id = user_id
        self.username = username
        self.quota = quota
        self.is_admin = is_admin
        self.created_at = created_at

    def __repr__(self):
        return f"<UserAccount {self.user_id} {self.username!r}>"


class DailyUsage(Persistent):
    """Bytes added by one user on one calendar day. Never negative."""

    def __init__(self, usage_bytes=0):
        self.usage_bytes = max(usage_bytes, 0)

    def change(self, delta):
        self.usage_bytes = max(self.usage_bytes + delta, 0)

    def _p_resolveConflict(self, old, committed, new):
        merged = dict(committed)
        merged["usage_bytes"] = max(
            committed["usage_bytes"] + new["usage_bytes"] - old["usage_bytes"], 0
        )
        return merged
