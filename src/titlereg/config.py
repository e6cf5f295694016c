"""Registry configuration for titlereg."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from titlereg._constants import (
    DEFAULT_CAS_MAX_ATTEMPTS,
    DEFAULT_INDEX_KEY,
    DEFAULT_LEGACY_KEY,
    DEFAULT_READ_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    is_reserved_key,
)
from titlereg.exceptions import TitleRegistryConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class RegistryConfig:
    """Registry configuration.

    Parameters
    ----------
    index_key : str
        Store key holding the Id Index.  Must be a reserved key
        (``_`` prefix) so no title id can collide with it.
    legacy_key : str
        Store key for the legacy smoke-test integer written by
        ``initialize``.
    legacy_counter_enabled : bool
        Write the legacy smoke-test integer on ``initialize``.
    create_only : bool
        Reject ``create_title`` for an id that already has a record
        instead of overwriting it (upsert).
    require_existing : bool
        Make ``update_title`` / ``transfer_owner`` fail on absent or
        malformed records.  When ``False`` a zero-valued record is
        materialized instead, as the original ledger code did.
    serialize_mutations : bool
        Run every mutating operation under a single in-process lock.
    cas_max_attempts : int
        Compare-and-swap rounds per key before giving up, for stores
        that support conditional writes.
    raw_write_enabled : bool
        Expose the raw ``write`` operation through the dispatcher.
    store_url : str or None
        Base URL of the HTTP ledger used by :class:`~titlereg.store.HttpStore`.
    request_timeout : float
        Total timeout in seconds for a single HTTP store request.
    read_retries : int
        Extra attempts for idempotent HTTP store reads after a
        transport failure.
    """

    index_key: str = DEFAULT_INDEX_KEY
    legacy_key: str = DEFAULT_LEGACY_KEY
    legacy_counter_enabled: bool = True
    create_only: bool = False
    require_existing: bool = True
    serialize_mutations: bool = True
    cas_max_attempts: int = DEFAULT_CAS_MAX_ATTEMPTS
    raw_write_enabled: bool = True
    store_url: str | None = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    read_retries: int = DEFAULT_READ_RETRIES

    def __post_init__(self) -> None:
        if not is_reserved_key(self.index_key):
            raise TitleRegistryConfigError(
                f"index_key must start with '_' to stay distinct from title ids, got {self.index_key!r}"
            )
        if not self.legacy_key:
            raise TitleRegistryConfigError("legacy_key must be a non-empty string")
        if self.legacy_key == self.index_key:
            raise TitleRegistryConfigError("legacy_key and index_key must differ")
        if self.cas_max_attempts < 1:
            raise TitleRegistryConfigError(f"cas_max_attempts must be >= 1, got {self.cas_max_attempts}")
        if self.request_timeout <= 0:
            raise TitleRegistryConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.read_retries < 0:
            raise TitleRegistryConfigError(f"read_retries must be >= 0, got {self.read_retries}")

    @classmethod
    def from_env(cls, **overrides: Any) -> RegistryConfig:
        """Create configuration from environment variables.

        Reads optional ``TITLEREG_*`` variables.  Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        RegistryConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "TITLEREG_INDEX_KEY": "index_key",
            "TITLEREG_LEGACY_KEY": "legacy_key",
            "TITLEREG_STORE_URL": "store_url",
        }
        _ENV_BOOL_MAP = {
            "TITLEREG_LEGACY_COUNTER_ENABLED": ("legacy_counter_enabled", True),
            "TITLEREG_CREATE_ONLY": ("create_only", False),
            "TITLEREG_REQUIRE_EXISTING": ("require_existing", True),
            "TITLEREG_SERIALIZE_MUTATIONS": ("serialize_mutations", True),
            "TITLEREG_RAW_WRITE_ENABLED": ("raw_write_enabled", True),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        # Numeric fields, handled separately
        try:
            attempts_env = env.get("TITLEREG_CAS_MAX_ATTEMPTS")
            if attempts_env is not None and "cas_max_attempts" not in overrides:
                config_kwargs["cas_max_attempts"] = int(attempts_env)

            timeout_env = env.get("TITLEREG_REQUEST_TIMEOUT")
            if timeout_env is not None and "request_timeout" not in overrides:
                config_kwargs["request_timeout"] = float(timeout_env)

            retries_env = env.get("TITLEREG_READ_RETRIES")
            if retries_env is not None and "read_retries" not in overrides:
                config_kwargs["read_retries"] = int(retries_env)
        except ValueError as exc:
            raise TitleRegistryConfigError(f"Invalid numeric TITLEREG_* setting: {exc}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
