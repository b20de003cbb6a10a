from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from watchlog.models.watch_contracts import (
    IDENTITY_FIELDS,
    PART_FIELDS,
    EnrichmentPolicy,
    LogEntry,
)

SHORTS_URL_MARKER = "/shorts/"
SHORTS_MAX_DURATION_SECONDS = 60

# Enrichment sub-records follow their enrichment toggle and the identifier they are looked up by.
ENRICHMENT_FIELD_TOGGLES: dict[str, tuple[str, str]] = {
    "categoryName": ("category_name", "categoryId"),
    "channelExtra": ("channel_basics", "channelId"),
}


def parts_needed_from_field_prefs(field_prefs: Mapping[str, bool]) -> list[str]:
    """Return the API parts with at least one enabled field, in canonical part order.

    An empty result means no remote fetch is required.
    """
    return [
        part
        for part, fields in PART_FIELDS.items()
        if any(bool(field_prefs.get(field_name)) for field_name in fields)
    ]


def infer_is_shorts(url: str | None, duration_seconds: int | None) -> bool:
    if url and SHORTS_URL_MARKER in url:
        return True
    if isinstance(duration_seconds, int) and not isinstance(duration_seconds, bool):
        return duration_seconds <= SHORTS_MAX_DURATION_SECONDS
    return False


def project_fields(
    entry: Mapping[str, Any],
    field_prefs: Mapping[str, bool],
    enrichment: EnrichmentPolicy | None = None,
) -> LogEntry:
    """Reduce a candidate log entry to the identity fields plus the enabled fields.

    Disabled attributes are removed outright; absence means "not collected".
    """
    projected: LogEntry = {}
    for key, value in entry.items():
        if key in IDENTITY_FIELDS:
            projected[key] = value
            continue
        if not is_field_enabled(key, field_prefs, enrichment):
            continue
        governing = ENRICHMENT_FIELD_TOGGLES.get(key)
        # No identifier means no lookup was possible; the sub-record was not collected.
        if governing is not None and not entry.get(governing[1]):
            continue
        projected[key] = value
    return projected


def is_field_enabled(
    key: str,
    field_prefs: Mapping[str, bool],
    enrichment: EnrichmentPolicy | None,
) -> bool:
    governing = ENRICHMENT_FIELD_TOGGLES.get(key)
    if governing is not None:
        toggle, _ = governing
        return enrichment is not None and bool(getattr(enrichment, toggle))
    return bool(field_prefs.get(key))
