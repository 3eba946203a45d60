class TaxpalError(Exception):
    """Base class for errors raised inside the engine."""


class RemoteUnavailable(TaxpalError):
    """The remote API could not be reached or answered with something unusable."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class StorageError(TaxpalError):
    """A persisted value exists but cannot be decoded."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"{key}: {reason}")
        self.key = key
        self.reason = reason
