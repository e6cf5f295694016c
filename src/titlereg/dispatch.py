"""Operation dispatch: named operations with string arguments to registry calls."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from enum import StrEnum

from titlereg.exceptions import ArgumentError, UnknownOperationError
from titlereg.registry import TitleRegistry

_logger = logging.getLogger(__name__)

Handler = Callable[[Sequence[str]], Awaitable[bytes | None]]


class Operation(StrEnum):
    INITIALIZE = "initialize"
    DELETE = "delete"
    WRITE = "write"
    INIT_TITLE = "init_title"
    SET_OWNER = "set_owner"
    UPDATE_TITLE = "update_title"
    QUERY = "query"


#: Names used by the original ledger deployment.
_LEGACY_NAMES: dict[str, Operation] = {
    "init": Operation.INITIALIZE,
    "init_v5c": Operation.INIT_TITLE,
    "update_v5c": Operation.UPDATE_TITLE,
}


def resolve_operation(name: str) -> Operation:
    """Map an operation name to :class:`Operation`.

    Raises :class:`UnknownOperationError` for anything outside the table.
    """
    legacy = _LEGACY_NAMES.get(name)
    if legacy is not None:
        return legacy
    try:
        return Operation(name)
    except ValueError:
        raise UnknownOperationError(f"Received unknown function invocation: {name!r}", operation=name) from None


class Dispatcher:
    """Routes ``(operation, args)`` pairs to a :class:`TitleRegistry`.

    Mutating operations return ``None``; ``query`` returns the stored
    bytes.  The handler table is built once; when the registry config
    disables raw writes, ``write`` is left out and reported as unknown.
    """

    def __init__(self, registry: TitleRegistry) -> None:
        self._registry = registry
        handlers: dict[Operation, Handler] = {
            Operation.INITIALIZE: self._initialize,
            Operation.DELETE: self._delete,
            Operation.WRITE: self._write,
            Operation.INIT_TITLE: self._init_title,
            Operation.SET_OWNER: self._set_owner,
            Operation.UPDATE_TITLE: self._update_title,
            Operation.QUERY: self._query,
        }
        if not registry.config.raw_write_enabled:
            del handlers[Operation.WRITE]
        self._handlers = handlers

    @property
    def operations(self) -> frozenset[Operation]:
        """Operations this dispatcher will accept."""
        return frozenset(self._handlers)

    async def invoke(self, function: str, args: Sequence[str]) -> bytes | None:
        """Run the operation named *function* with positional *args*."""
        _logger.debug("invoke %s (%d args)", function, len(args))
        operation = resolve_operation(function)
        handler = self._handlers.get(operation)
        if handler is None:
            _logger.debug("Operation %s is disabled", operation)
            raise UnknownOperationError(f"Operation {function!r} is not enabled", operation=function)
        return await handler(args)

    async def query(self, function: str, args: Sequence[str]) -> bytes:
        """Read-only entry point; only ``"query"`` is accepted."""
        if function != Operation.QUERY:
            raise UnknownOperationError(
                f"Invalid query function name {function!r}. Expecting \"query\"",
                operation=function,
            )
        return await self._query(args)

    async def _initialize(self, args: Sequence[str]) -> None:
        await self._registry.initialize(args)

    async def _delete(self, args: Sequence[str]) -> None:
        await self._registry.delete_title(args)

    async def _write(self, args: Sequence[str]) -> None:
        await self._registry.raw_write(args)

    async def _init_title(self, args: Sequence[str]) -> None:
        await self._registry.create_title(args)

    async def _set_owner(self, args: Sequence[str]) -> None:
        await self._registry.transfer_owner(args)

    async def _update_title(self, args: Sequence[str]) -> None:
        await self._registry.update_title(args)

    async def _query(self, args: Sequence[str]) -> bytes:
        if len(args) != 1:
            raise ArgumentError("Incorrect number of arguments. Expecting id of the title to query")
        return await self._registry.raw_read(args[0])
