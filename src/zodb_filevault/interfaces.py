from zope.interface import Attribute
from zope.interface import Interface


class IStorageProvider(Interface):
    """A single remote object-storage backend.

    Implementations hold their own client and credentials and keep no
    per-call state, so one instance may serve concurrent requests.
    """

    provider_id = Attribute("Identifier recorded on files stored here")

    def upload(data, key, content_type):
        """Store bytes under key and return an UploadResult.

        Raises BackendError on transport, auth or permission failure.
        """

    def download(key):
        """Return a DownloadResult with an open byte stream.

        Raises ObjectNotFound if the key is absent, BackendError otherwise.
        """

    def delete(key):
        """Delete key; return False if it was already absent.

        Raises BackendError on transport failure.
        """

    def is_available():
        """Cheap liveness probe. Never raises."""


class IStorageOrchestrator(Interface):
    """Failover-aware front for an ordered list of providers."""

    providers = Attribute("Providers in priority order")

    def put(data, key, content_type):
        """Upload through the first available provider."""

    def get(key, known_provider_id):
        """Download from the recorded provider, falling back to the others."""

    def delete(key, known_provider_id):
        """Delete from the recorded provider only."""


class IFileCatalog(Interface):
    """Durable records binding file ids to the provider holding the bytes."""

    def create(owner_id, key, provider_id, original_name, size, content_type):
        """Create and return a FileRecord."""

    def find_by_id(file_id):
        """Return the FileRecord or None."""

    def list_by_owner(owner_id):
        """Return the owner's FileRecords, newest first."""

    def delete(file_id):
        """Remove the record."""


class IQuotaStore(Interface):
    """Durable per-user quota state and daily usage history."""

    def find_quota_state(user_id):
        """Return the user's QuotaState or None."""

    def update_quota_state(user_id, usage, next_reset):
        """Overwrite usage and next reset instant."""

    def upsert_daily_entry(user_id, day, delta):
        """Add delta to the user's entry for day, creating it if needed."""

    def list_daily_entries(day):
        """Return (username, usage_bytes) pairs recorded for day."""
