from __future__ import annotations

from typing import Any

from watchlog.models.watch_contracts import (
    REQUIRED_DISPLAY_FIELDS,
    WatchLogConfig,
    WatchLogConfigUpdate,
)
from watchlog.repositories.key_value_store import KeyValueStore

CONFIG_KEY = "config"


class ConfigRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def load(self) -> WatchLogConfig:
        raw_config = self._store.get(CONFIG_KEY, {})
        if not isinstance(raw_config, dict):
            raw_config = {}
        return WatchLogConfig.model_validate(raw_config)

    def apply_update(
        self,
        update: WatchLogConfigUpdate,
        *,
        force_display_fields: bool = True,
    ) -> WatchLogConfig:
        def _merge(current: Any) -> dict[str, Any]:
            merged = WatchLogConfig.model_validate(current if isinstance(current, dict) else {})
            stored = merged.to_storage()
            if update.api_key is not None:
                stored["apiKey"] = update.api_key
            if update.profile is not None:
                stored["profile"] = update.profile
            if update.field_prefs is not None:
                field_prefs = dict(stored["fieldPrefs"])
                field_prefs.update(update.field_prefs)
                if force_display_fields:
                    for field_name in REQUIRED_DISPLAY_FIELDS:
                        field_prefs[field_name] = True
                stored["fieldPrefs"] = field_prefs
            if update.enrichment is not None:
                enrichment = dict(stored["enrichment"])
                enrichment.update(update.enrichment.model_dump(by_alias=True, exclude_unset=True))
                stored["enrichment"] = enrichment
            return WatchLogConfig.model_validate(stored).to_storage()

        updated = self._store.update(CONFIG_KEY, {}, _merge)
        return WatchLogConfig.model_validate(updated)
