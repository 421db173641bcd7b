from dataclasses import dataclass

import typing


@dataclass(frozen=True)
class UploadResult:
    provider_id: str
    location: str
    key: str
    size: int


@dataclass(frozen=True)
class DownloadResult:
    stream: typing.Any
    content_type: str
    size: int
    provider_id: str


@dataclass(frozen=True)
class FileDownload:
    """What a caller needs to stream a file back to its owner."""

    stream: typing.Any
    content_type: str
    size: int
    filename: str


@dataclass(frozen=True)
class FileInfo:
    """Detached, read-only copy of a file record handed to callers."""

    file_id: str
    owner_id: str
    key: str
    provider_id: str
    original_name: str
    size: int
    content_type: str
    created_at: typing.Any
    location: typing.Optional[str] = None
