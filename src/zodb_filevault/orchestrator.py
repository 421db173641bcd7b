from zodb_filevault.exceptions import AllProvidersUnavailable
from zodb_filevault.exceptions import ObjectNotFound
from zodb_filevault.exceptions import UnknownProvider
from zodb_filevault.interfaces import IStorageOrchestrator
from zodb_filevault.interfaces import IStorageProvider
from zope.interface import implementer

import logging


logger = logging.getLogger(__name__)


@implementer(IStorageOrchestrator)
class StorageOrchestrator:
    """Routes object operations over providers in a fixed priority order.

    Uploads go to the first provider that is available and accepts the
    bytes; providers are tried one after another, never concurrently, so
    at most one of them ends up holding the object. Reads prefer the
    provider recorded at upload time and fall back to the others. Deletes
    only ever touch the recorded provider.
    """

    def __init__(self, providers):
        providers = tuple(providers)
        if not providers:
            raise ValueError("At least one storage provider is required")
        seen = set()
        for provider in providers:
            if not IStorageProvider.providedBy(provider):
                raise TypeError(f"{provider!r} does not provide IStorageProvider")
            if provider.provider_id in seen:
                raise ValueError(f"Duplicate provider id {provider.provider_id!r}")
            seen.add(provider.provider_id)
        self._providers = providers
        self._by_id = {p.provider_id: p for p in providers}

    @property
    def providers(self):
        return self._providers

    def provider(self, provider_id):
        try:
            return self._by_id[provider_id]
        except KeyError:
            raise UnknownProvider(provider_id) from None

    def put(self, data, key, content_type):
        for provider in self._providers:
            if not provider.is_available():
                logger.warning(
                    "Provider %s is not available, trying next one",
                    provider.provider_id,
                )
                continue
            try:
                result = provider.upload(data, key, content_type)
            except Exception:
                logger.warning(
                    "Upload of %s to provider %s failed",
                    key,
                    provider.provider_id,
                    exc_info=True,
                )
                continue
            logger.info("Uploaded %s using provider %s", key, provider.provider_id)
            return result
        raise AllProvidersUnavailable("upload", key)

    def get(self, key, known_provider_id):
        recorded = self._by_id.get(known_provider_id)
        if recorded is None:
            logger.warning(
                "Recorded provider %r for %s is not configured",
                known_provider_id,
                key,
            )
            candidates = self._providers
        else:
            candidates = (recorded,) + tuple(
                p for p in self._providers if p is not recorded
            )

        for provider in candidates:
            if not provider.is_available():
                logger.warning(
                    "Provider %s is not available for download of %s",
                    provider.provider_id,
                    key,
                )
                continue
            try:
                result = provider.download(key)
            except ObjectNotFound:
                logger.info("Key %s not present on %s", key, provider.provider_id)
                continue
            except Exception:
                logger.warning(
                    "Download of %s from provider %s failed",
                    key,
                    provider.provider_id,
                    exc_info=True,
                )
                continue
            if provider is not recorded:
                logger.warning(
                    "Served %s from failover provider %s (recorded: %s)",
                    key,
                    provider.provider_id,
                    known_provider_id,
                )
            return result
        raise AllProvidersUnavailable("download", key)

    def delete(self, key, known_provider_id):
        provider = self.provider(known_provider_id)
        try:
            return provider.delete(key)
        except Exception as e:
            logger.warning(
                "Delete of %s on provider %s failed",
                key,
                known_provider_id,
                exc_info=True,
            )
            raise AllProvidersUnavailable("delete", key) from e
