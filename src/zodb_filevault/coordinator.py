from zodb_filevault.exceptions import FileNotFound
from zodb_filevault.exceptions import QuotaExceeded
from zodb_filevault.results import FileDownload

import logging
import os
import uuid


logger = logging.getLogger(__name__)


def object_key(owner_id, original_name):
    """Return a fresh storage key namespaced by owner.

    Keeps the original extension so providers can still guess types.
    """
    ext = os.path.splitext(original_name or "")[1].lower()
    return f"uploads/{owner_id}/{uuid.uuid4().hex}{ext}"


class UploadCoordinator:
    """Sequences quota, storage, catalog and usage for uploads and deletes.

    Upload order: capacity check, provider upload, catalog record, usage.
    Usage is only counted once the bytes and the record both exist, so a
    crash in between leaves an orphaned object rather than usage without
    a file. Delete removes the provider object first and leaves the
    record and usage alone if that fails.
    """

    def __init__(self, catalog, orchestrator, ledger, transaction_manager, retries=3):
        self.catalog = catalog
        self.orchestrator = orchestrator
        self.ledger = ledger
        self.transaction_manager = transaction_manager
        self.retries = retries

    def find_owned(self, file_id, owner_id):
        """Return the record if owner_id owns it, else raise FileNotFound."""
        self.transaction_manager.begin()
        try:
            record = self.catalog.find_by_id(file_id)
        finally:
            self.transaction_manager.abort()
        if record is None or record.owner_id != owner_id:
            raise FileNotFound(file_id)
        return record

    def upload(self, data, owner_id, original_name, content_type):
        size = len(data)
        if not self.ledger.check_capacity(owner_id, size):
            raise QuotaExceeded(owner_id, size)

        key = object_key(owner_id, original_name)
        stored = self.orchestrator.put(data, key, content_type)

        try:
            for attempt in self.transaction_manager.attempts(self.retries):
                with attempt:
                    record = self.catalog.create(
                        owner_id=owner_id,
                        key=stored.key,
                        provider_id=stored.provider_id,
                        original_name=original_name,
                        size=size,
                        content_type=content_type,
                        location=stored.location,
                    )
        except Exception:
            logger.error(
                "Could not record %s stored on %s", stored.key, stored.provider_id
            )
            self._discard(stored.key, stored.provider_id)
            raise

        try:
            self.ledger.record_usage(owner_id, size)
        except QuotaExceeded:
            # Only raised in strict mode, when a concurrent upload won.
            self._forget(record.file_id)
            self._discard(stored.key, stored.provider_id)
            raise

        logger.info(
            "User %s uploaded %s (%d bytes) to %s",
            owner_id,
            record.file_id,
            size,
            record.provider_id,
        )
        return record

    def delete(self, file_id, owner_id):
        record = self.find_owned(file_id, owner_id)
        key, provider_id, size = record.key, record.provider_id, record.size

        if not self.orchestrator.delete(key, provider_id):
            logger.warning("Object %s was already absent from %s", key, provider_id)

        self._forget(file_id)
        self.ledger.record_usage(owner_id, -size)
        logger.info("User %s deleted %s (%d bytes)", owner_id, file_id, size)
        return True

    def _forget(self, file_id):
        for attempt in self.transaction_manager.attempts(self.retries):
            with attempt:
                self.catalog.delete(file_id)

    def _discard(self, key, provider_id):
        try:
            self.orchestrator.delete(key, provider_id)
        except Exception:
            logger.warning(
                "Failed to remove %s from %s, object is orphaned",
                key,
                provider_id,
                exc_info=True,
            )


class FileService:
    """The file operations offered to the transport layer.

    A file that exists but belongs to someone else is reported exactly
    like one that does not exist. Records are returned as detached
    ``FileInfo`` copies, never as the stored persistent objects.
    """

    def __init__(self, coordinator):
        self.coordinator = coordinator

    @property
    def catalog(self):
        return self.coordinator.catalog

    def upload_file(self, data, owner_id, original_name, content_type):
        record = self.coordinator.upload(data, owner_id, original_name, content_type)
        return record.info()

    def list_files(self, owner_id):
        tm = self.coordinator.transaction_manager
        tm.begin()
        try:
            return [record.info() for record in self.catalog.list_by_owner(owner_id)]
        finally:
            tm.abort()

    def get_file_metadata(self, file_id, owner_id):
        return self.coordinator.find_owned(file_id, owner_id).info()

    def open_download(self, file_id, owner_id):
        record = self.coordinator.find_owned(file_id, owner_id)
        result = self.coordinator.orchestrator.get(record.key, record.provider_id)
        return FileDownload(
            stream=result.stream,
            content_type=result.content_type,
            size=result.size,
            filename=record.original_name,
        )

    def delete_file(self, file_id, owner_id):
        return self.coordinator.delete(file_id, owner_id)
