class FileVaultError(Exception):
    """Base class for all errors raised by the file vault."""


class QuotaExceeded(FileVaultError):
    """The upload would push the user past their storage capacity."""

    def __init__(self, user_id, requested, usage=None, capacity=None):
        self.user_id = user_id
        self.requested = requested
        self.usage = usage
        self.capacity = capacity
        if usage is None or capacity is None:
            message = f"Storage quota exceeded: {requested} bytes do not fit"
        else:
            message = (
                f"Storage quota exceeded: {usage} + {requested} bytes "
                f"> {capacity} bytes"
            )
        super().__init__(message)


_UNAVAILABLE_MESSAGES = {
    "upload": "All storage providers are unavailable, please try again later",
    "download": (
        "Storage provider is currently unavailable. The file is safe and "
        "will be reachable again once service is restored"
    ),
    "delete": (
        "Storage provider is currently unavailable, nothing was removed. "
        "Please try again later"
    ),
}


class AllProvidersUnavailable(FileVaultError):
    """No configured provider could complete the operation.

    Transient: the caller is expected to retry later.
    """

    def __init__(self, operation, key=None):
        self.operation = operation
        self.key = key
        super().__init__(
            _UNAVAILABLE_MESSAGES.get(
                operation, "All storage providers are unavailable"
            )
        )


class FileNotFound(FileVaultError):
    """The file does not exist or is not owned by the caller."""

    def __init__(self, file_id):
        self.file_id = file_id
        super().__init__("File not found")


class UserNotFound(FileVaultError):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id!r}")


class UnknownProvider(FileVaultError):
    def __init__(self, provider_id):
        self.provider_id = provider_id
        super().__init__(f"Provider {provider_id!r} is not configured")


class Forbidden(FileVaultError):
    """The caller lacks the privileges for the operation."""


class BackendError(FileVaultError):
    """A single provider failed; never surfaced past the orchestrator."""


class ObjectNotFound(BackendError):
    """The key is absent at this provider."""
