"""Settings resolution for the comparison core.

Admins edit settings as raw strings in a key/value table. Each key is
resolved in order: settings table, environment variable (upper-cased key),
built-in default. A value that fails to parse or is out of range is logged
and skipped in favour of the next source. If the confidence thresholds
resolve to an inconsistent pair, both fall back to their defaults.
"""

import os
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Annotated, Any

from pydantic import TypeAdapter, ValidationError

from bestthing.logging import get_logger
from bestthing.matchup.models import Configuration

log = get_logger(__name__)

SETTINGS_CACHE_TTL_SECONDS = float(os.getenv("SETTINGS_CACHE_TTL_SECONDS", "60"))

# Older deployments configured these through differently named variables
ENV_ALIASES: dict[str, list[str]] = {
    "cooldown_period": ["FAMILIARITY_COOLDOWN"],
}

# Must satisfy high > medium together; both revert to defaults when they do not
THRESHOLD_KEYS = ("high_confidence_threshold", "medium_confidence_threshold")


def _field_adapter(name: str) -> TypeAdapter:
    field = Configuration.model_fields[name]
    if field.metadata:
        return TypeAdapter(Annotated[(field.annotation, *field.metadata)])
    return TypeAdapter(field.annotation)


_ADAPTERS: dict[str, TypeAdapter] = {
    name: _field_adapter(name) for name in Configuration.model_fields
}


def _candidates(key: str, raw: Mapping[str, Any], environ: Mapping[str, str]):
    value = raw.get(key)
    if value is not None and value != "":
        yield "settings", value
    for env_key in [key.upper(), *ENV_ALIASES.get(key, [])]:
        if env_key in environ:
            yield "environment", environ[env_key]


def resolve_setting(key: str, raw: Mapping[str, Any], environ: Mapping[str, str]) -> Any:
    """Resolve a single setting, or return the field default."""
    adapter = _ADAPTERS[key]
    for source, value in _candidates(key, raw, environ):
        try:
            return adapter.validate_python(value)
        except ValidationError as e:
            log.warning(
                "setting_invalid",
                key=key,
                source=source,
                value=str(value),
                error=e.errors(include_url=False)[0]["msg"],
            )
    return Configuration.model_fields[key].default


def parse_settings(
    raw: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None
) -> Configuration:
    """Build a Configuration snapshot from raw settings.

    Args:
        raw: Settings table contents (key -> raw value)
        environ: Environment to fall back to (defaults to os.environ)

    Returns:
        Immutable configuration snapshot
    """
    raw = raw or {}
    environ = os.environ if environ is None else environ
    values = {key: resolve_setting(key, raw, environ) for key in Configuration.model_fields}
    try:
        return Configuration(**values)
    except ValidationError as e:
        # Thresholds are only checked against each other once both resolve
        log.warning(
            "setting_invalid",
            key="high_confidence_threshold",
            source="combined",
            value=str(values["high_confidence_threshold"]),
            error=e.errors(include_url=False)[0]["msg"],
        )
        for key in THRESHOLD_KEYS:
            values[key] = Configuration.model_fields[key].default
        return Configuration(**values)


class SettingsCache:
    """Caches the parsed configuration for a short TTL.

    Every caller gets a whole frozen snapshot, so a request never mixes
    values from two different reloads.
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[Mapping[str, Any]]],
        ttl_seconds: float = SETTINGS_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        environ: Mapping[str, str] | None = None
    ):
        """Initialize the cache.

        Args:
            loader: Coroutine function returning the raw settings table
            ttl_seconds: How long a parsed snapshot stays valid
            clock: Monotonic time source
            environ: Environment fallback passed to `parse_settings`
        """
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.environ = environ
        self._snapshot: Configuration | None = None
        self._loaded_at: float | None = None

    async def get(self) -> Configuration:
        now = self.clock()
        if (
            self._snapshot is not None
            and self._loaded_at is not None
            and now - self._loaded_at < self.ttl_seconds
        ):
            return self._snapshot

        raw = await self.loader()
        self._snapshot = parse_settings(raw, self.environ)
        self._loaded_at = now
        log.debug("settings_loaded", keys=len(raw))
        return self._snapshot

    def invalidate(self) -> None:
        """Drop the cached snapshot (call after settings are edited)."""
        self._snapshot = None
        self._loaded_at = None
