"""Custom exception hierarchy for titlereg."""

from __future__ import annotations


class TitleRegistryError(Exception):
    """Base exception for all titlereg errors."""


class TitleRegistryConfigError(TitleRegistryError):
    """Invalid or missing configuration."""


class ArgumentError(TitleRegistryError):
    """Wrong argument count, empty required field, or unparseable value."""


class UnknownOperationError(TitleRegistryError):
    """Dispatch name does not map to any registry operation."""

    def __init__(self, message: str, *, operation: str = "") -> None:
        self.operation = operation
        super().__init__(message)


class AlreadyExistsError(TitleRegistryError):
    """Create-only registration found an existing record."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class DecodeError(TitleRegistryError):
    """Stored bytes are not a well-formed record or index."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class StoreError(TitleRegistryError):
    """Store backend failure (network, unexpected status, closed client)."""

    def __init__(
        self,
        message: str,
        *,
        key: str = "",
        status_code: int | None = None,
    ) -> None:
        self.key = key
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(TitleRegistryError):
    """Key absent, or the store read for it failed.

    Both cases raise this; ``__cause__`` holds the underlying
    :class:`StoreError` when the read itself failed.
    """

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class MutationError(TitleRegistryError):
    """A put or delete against the store did not complete."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class WriteError(MutationError):
    """Store put failed."""


class DeleteError(MutationError):
    """Store delete failed."""


class ConflictError(MutationError):
    """Conditional write kept losing to concurrent writers.

    Raised once ``cas_max_attempts`` compare-and-swap rounds have been
    exhausted for a single key.
    """


class PartialWriteError(MutationError):
    """The first store call of an operation committed but a later one failed.

    ``committed`` lists the keys whose new state is already durable;
    ``key`` is the key whose update failed.  Operators need both to
    reconcile the store by hand.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str = "",
        committed: tuple[str, ...] = (),
    ) -> None:
        self.committed = committed
        super().__init__(message, key=key)


class OrphanedRecordError(PartialWriteError, WriteError):
    """Title record written but the index append failed."""


class PartialDeleteError(PartialWriteError, DeleteError):
    """Index entry removed but the record delete failed."""


class IndexResetError(PartialWriteError, WriteError):
    """Legacy value written but the index reset failed."""
