from google.api_core.exceptions import GoogleAPIError
from google.api_core.exceptions import NotFound
from google.cloud import storage
from google.oauth2 import service_account
from zodb_filevault.exceptions import BackendError
from zodb_filevault.exceptions import ObjectNotFound
from zodb_filevault.interfaces import IStorageProvider
from zodb_filevault.results import DownloadResult
from zodb_filevault.results import UploadResult
from zope.interface import implementer

import logging


logger = logging.getLogger(__name__)


@implementer(IStorageProvider)
class GCSProvider:
    """Google Cloud Storage adapter for one bucket.

    Authenticates with a service account file when one is given, else with
    application default credentials. A ready ``client`` may be passed in
    instead.
    """

    def __init__(
        self,
        provider_id,
        bucket_name,
        project=None,
        credentials_file=None,
        prefix="",
        timeout=10,
        client=None,
    ):
        if not bucket_name:
            raise ValueError("GCS bucket name is required")
        self.provider_id = provider_id
        self.bucket_name = bucket_name
        self.timeout = timeout
        self._prefix = prefix.strip("/") if prefix else ""

        if client is None:
            if credentials_file:
                credentials = service_account.Credentials.from_service_account_file(
                    credentials_file
                )
                client = storage.Client(
                    project=project or credentials.project_id,
                    credentials=credentials,
                )
            else:
                client = storage.Client(project=project)
        self._client = client
        self._bucket = client.bucket(bucket_name)

    def __repr__(self):
        return f"<GCSProvider {self.provider_id} bucket={self.bucket_name}>"

    def _full_key(self, key):
        if self._prefix:
            return f"{self._prefix}/{key}"
        return key

    def _wrap_error(self, e, operation, key):
        logger.debug("GCS %s failed for key=%s: %s", operation, key, e)
        raise BackendError(
            f"GCS {operation} failed on {self.provider_id} for key={key}: "
            f"{type(e).__name__}"
        ) from e

    def upload(self, data, key, content_type):
        blob = self._bucket.blob(self._full_key(key))
        try:
            blob.upload_from_string(
                data,
                content_type=content_type or "application/octet-stream",
                timeout=self.timeout,
            )
        except GoogleAPIError as e:
            self._wrap_error(e, "upload", key)
        return UploadResult(
            provider_id=self.provider_id,
            location=(
                f"https://storage.googleapis.com/{self.bucket_name}/"
                f"{self._full_key(key)}"
            ),
            key=key,
            size=len(data),
        )

    def download(self, key):
        blob = self._bucket.blob(self._full_key(key))
        try:
            blob.reload(timeout=self.timeout)
            stream = blob.open("rb", timeout=self.timeout)
        except NotFound as e:
            raise ObjectNotFound(f"Key {key} not found on {self.provider_id}") from e
        except GoogleAPIError as e:
            self._wrap_error(e, "download", key)
        return DownloadResult(
            stream=stream,
            content_type=blob.content_type or "application/octet-stream",
            size=int(blob.size or 0),
            provider_id=self.provider_id,
        )

    def delete(self, key):
        blob = self._bucket.blob(self._full_key(key))
        try:
            blob.delete(timeout=self.timeout)
        except NotFound:
            return False
        except GoogleAPIError as e:
            self._wrap_error(e, "delete", key)
        return True

    def is_available(self):
        try:
            return bool(self._bucket.exists(timeout=self.timeout))
        except Exception:
            logger.debug(
                "GCS bucket %s unreachable for provider %s",
                self.bucket_name,
                self.provider_id,
                exc_info=True,
            )
            return False
