from datetime import datetime
from datetime import timedelta
from datetime import timezone
from zodb_filevault.exceptions import BackendError
from zodb_filevault.exceptions import ObjectNotFound
from zodb_filevault.interfaces import IStorageProvider
from zodb_filevault.orchestrator import StorageOrchestrator
from zodb_filevault.results import DownloadResult
from zodb_filevault.results import UploadResult
from zodb_filevault.vault import FileVault
from zope.interface import implementer

import io
import pytest
import ZODB


@implementer(IStorageProvider)
class FakeProvider:
    """In-memory provider with switchable failures."""

    def __init__(self, provider_id, available=True):
        self.provider_id = provider_id
        self.available = available
        self.fail_upload = False
        self.fail_download = False
        self.fail_delete = False
        self.objects = {}
        self.calls = []

    def upload(self, data, key, content_type):
        self.calls.append(("upload", key))
        if self.fail_upload:
            raise BackendError(f"{self.provider_id} upload broken")
        self.objects[key] = (bytes(data), content_type)
        return UploadResult(
            provider_id=self.provider_id,
            location=f"fake://{self.provider_id}/{key}",
            key=key,
            size=len(data),
        )

    def download(self, key):
        self.calls.append(("download", key))
        if self.fail_download:
            raise BackendError(f"{self.provider_id} download broken")
        try:
            data, content_type = self.objects[key]
        except KeyError:
            raise ObjectNotFound(key) from None
        return DownloadResult(
            stream=io.BytesIO(data),
            content_type=content_type,
            size=len(data),
            provider_id=self.provider_id,
        )

    def delete(self, key):
        self.calls.append(("delete", key))
        if self.fail_delete:
            raise BackendError(f"{self.provider_id} delete broken")
        return self.objects.pop(key, None) is not None

    def is_available(self):
        self.calls.append(("is_available", None))
        return self.available

    def called(self, operation):
        return [key for op, key in self.calls if op == operation]


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc))


@pytest.fixture
def aws():
    return FakeProvider("aws")


@pytest.fixture
def gcp():
    return FakeProvider("gcp")


@pytest.fixture
def orchestrator(aws, gcp):
    return StorageOrchestrator([aws, gcp])


@pytest.fixture
def vault(orchestrator, clock):
    v = FileVault(ZODB.DB(None), orchestrator, max_capacity=1000, clock=clock)
    yield v
    v.close()


@pytest.fixture
def session(vault):
    with vault.session() as s:
        yield s
