from botocore.config import Config
from botocore.exceptions import BotoCoreError
from botocore.exceptions import ClientError
from zodb_filevault.exceptions import BackendError
from zodb_filevault.exceptions import ObjectNotFound
from zodb_filevault.interfaces import IStorageProvider
from zodb_filevault.results import DownloadResult
from zodb_filevault.results import UploadResult
from zope.interface import implementer

import boto3
import logging
import re


logger = logging.getLogger(__name__)

_MISSING_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _error_code(e):
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Code", "Unknown")
    return type(e).__name__


@implementer(IStorageProvider)
class S3Provider:
    """boto3 adapter for one S3-compatible bucket."""

    def __init__(
        self,
        provider_id,
        bucket_name,
        prefix="",
        endpoint_url=None,
        region_name=None,
        aws_access_key_id=None,
        aws_secret_access_key=None,
        use_ssl=True,
        addressing_style="auto",
        connect_timeout=10,
        read_timeout=10,
        max_attempts=2,
    ):
        self.provider_id = provider_id
        self.bucket_name = bucket_name
        self.region_name = region_name or "us-east-1"
        self.endpoint_url = endpoint_url
        self._prefix = prefix.rstrip("/") if prefix else ""

        if self._prefix:
            if not re.fullmatch(r"[a-zA-Z0-9._/-]*", self._prefix):
                raise ValueError(
                    f"s3-prefix contains invalid characters: {self._prefix!r}. "
                    "Only alphanumeric characters, dots, hyphens, underscores, "
                    "and slashes are allowed."
                )
            if ".." in self._prefix:
                raise ValueError(f"s3-prefix must not contain '..': {self._prefix!r}")

        config = Config(
            s3={"addressing_style": addressing_style},
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": max_attempts, "mode": "standard"},
        )

        kwargs = {"config": config, "region_name": self.region_name}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        if aws_access_key_id:
            kwargs["aws_access_key_id"] = aws_access_key_id
        if aws_secret_access_key:
            kwargs["aws_secret_access_key"] = aws_secret_access_key
        kwargs["use_ssl"] = use_ssl
        if not use_ssl:
            logger.warning(
                "S3 SSL is disabled for provider %s: data and credentials "
                "are transmitted in cleartext",
                provider_id,
            )

        self._client = boto3.client("s3", **kwargs)

    def __repr__(self):
        return f"<S3Provider {self.provider_id} bucket={self.bucket_name}>"

    def _full_key(self, key):
        if self._prefix:
            return f"{self._prefix}/{key}"
        return key

    def _location(self, key):
        full_key = self._full_key(key)
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{full_key}"
        return (
            f"https://{self.bucket_name}.s3.{self.region_name}"
            f".amazonaws.com/{full_key}"
        )

    def _wrap_error(self, e, operation, key):
        """Wrap a botocore error in a generic one, logging the original at DEBUG."""
        logger.debug("S3 %s failed for key=%s: %s", operation, key, e)
        raise BackendError(
            f"S3 {operation} failed on {self.provider_id} for key={key}: "
            f"{_error_code(e)}"
        ) from e

    def upload(self, data, key, content_type):
        try:
            self._client.put_object(
                Bucket=self.bucket_name,
                Key=self._full_key(key),
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as e:
            self._wrap_error(e, "upload", key)
        return UploadResult(
            provider_id=self.provider_id,
            location=self._location(key),
            key=key,
            size=len(data),
        )

    def download(self, key):
        try:
            response = self._client.get_object(
                Bucket=self.bucket_name, Key=self._full_key(key)
            )
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise ObjectNotFound(
                    f"Key {key} not found on {self.provider_id}"
                ) from e
            self._wrap_error(e, "download", key)
        except BotoCoreError as e:
            self._wrap_error(e, "download", key)
        return DownloadResult(
            stream=response["Body"],
            content_type=response.get("ContentType") or "application/octet-stream",
            size=response.get("ContentLength", 0),
            provider_id=self.provider_id,
        )

    def head(self, key):
        """Return the object's metadata dict, or None if not found."""
        try:
            return self._client.head_object(
                Bucket=self.bucket_name, Key=self._full_key(key)
            )
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return None
            self._wrap_error(e, "head", key)
        except BotoCoreError as e:
            self._wrap_error(e, "head", key)

    def delete(self, key):
        if self.head(key) is None:
            return False
        try:
            self._client.delete_object(Bucket=self.bucket_name, Key=self._full_key(key))
        except (ClientError, BotoCoreError) as e:
            self._wrap_error(e, "delete", key)
        return True

    def is_available(self):
        try:
            self._client.head_bucket(Bucket=self.bucket_name)
        except Exception:
            logger.debug(
                "S3 bucket %s unreachable for provider %s",
                self.bucket_name,
                self.provider_id,
                exc_info=True,
            )
            return False
        return True
