"""Persistent user settings stored next to the cache and history."""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from ..infra.storage import KeyValueStore
from ..models import UserSettings
from .base import _MISSING, PrefixedStore

SETTINGS_PREFIX = "config_"
SETTINGS_KEY = "settings"


class SettingsStore(PrefixedStore):
    """Merge stored overrides over :class:`UserSettings` defaults."""

    def __init__(
        self,
        backend: KeyValueStore,
        prefix: str = SETTINGS_PREFIX,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        super().__init__(backend, prefix, logger=logger)

    def _stored_overrides(self) -> dict[str, Any]:
        try:
            payload = self._read_json(SETTINGS_KEY)
        except ValueError:
            self.logger.warning("settings_payload_corrupt")
            return {}
        if payload is _MISSING or not isinstance(payload, dict):
            return {}
        data = payload.get("data")
        return data if isinstance(data, dict) else {}

    def get_settings(self) -> UserSettings:
        merged = UserSettings().model_dump()
        for name, value in self._stored_overrides().items():
            if name not in merged:
                continue
            candidate = {**merged, name: value}
            try:
                UserSettings.model_validate(candidate)
            except ValidationError:
                self.logger.warning("settings_value_ignored", name=name)
                continue
            merged = candidate
        return UserSettings.model_validate(merged)

    def get(self, name: str) -> Any:
        return getattr(self.get_settings(), name)

    def update(self, **changes: Any) -> UserSettings:
        """Validate and persist ``changes``; raises ``ValueError`` for unknown names."""

        current = self.get_settings().model_dump()
        unknown = set(changes) - set(current)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        updated = UserSettings.model_validate({**current, **changes})
        self._write_json(SETTINGS_KEY, {"data": updated.model_dump(mode="json")})
        return updated

    def set(self, name: str, value: Any) -> UserSettings:
        return self.update(**{name: value})

    def reset(self) -> UserSettings:
        defaults = UserSettings()
        self._write_json(SETTINGS_KEY, {"data": defaults.model_dump(mode="json")})
        return defaults


__all__ = ["SETTINGS_PREFIX", "SettingsStore"]
