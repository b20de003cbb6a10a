from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

PART_FIELDS: dict[str, tuple[str, ...]] = {
    "snippet": (
        "title",
        "description",
        "channelId",
        "channelTitle",
        "publishedAt",
        "tags",
        "thumbnails",
        "categoryId",
        "defaultLanguage",
        "defaultAudioLanguage",
        "liveContent",
    ),
    "contentDetails": (
        "durationSeconds",
        "definition",
        "caption",
        "regionRestriction",
        "contentRating",
    ),
    "statistics": ("viewCount", "likeCount", "commentCount"),
    "status": ("madeForKids",),
    "topicDetails": ("topicCategories",),
}
ALLOWED_PARTS: tuple[str, ...] = tuple(PART_FIELDS)
POLICY_FIELDS: frozenset[str] = frozenset(
    field_name for fields in PART_FIELDS.values() for field_name in fields
)

# Always present on a log entry, whatever the field policy says.
IDENTITY_FIELDS: frozenset[str] = frozenset(
    {"videoId", "url", "profile", "watchedAt", "isShorts"}
)

# Fields the watch-log viewer renders; a saved policy always keeps them on.
REQUIRED_DISPLAY_FIELDS: frozenset[str] = frozenset(
    {"title", "channelTitle", "thumbnails", "publishedAt", "durationSeconds", "madeForKids"}
)

DEFAULT_PROFILE = "Child"

LogEntry = dict[str, Any]


def default_field_prefs() -> dict[str, bool]:
    prefs = {field_name: True for fields in PART_FIELDS.values() for field_name in fields}
    prefs["topicCategories"] = False
    return prefs


def _normalize_field_prefs(value: object) -> dict[str, bool]:
    prefs = default_field_prefs()
    if not isinstance(value, dict):
        return prefs
    for raw_key, raw_flag in value.items():
        if raw_key in POLICY_FIELDS:
            prefs[str(raw_key)] = bool(raw_flag)
    return prefs


class EnrichmentPolicy(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    category_name: bool = Field(default=True, alias="categoryName")
    channel_basics: bool = Field(default=False, alias="channelBasics")


class WatchLogConfig(BaseModel):
    """User-facing configuration written by the settings page and read by the pipeline."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    api_key: str = Field(default="", alias="apiKey")
    profile: str = Field(default=DEFAULT_PROFILE)
    field_prefs: dict[str, bool] = Field(default_factory=default_field_prefs, alias="fieldPrefs")
    enrichment: EnrichmentPolicy = Field(default_factory=EnrichmentPolicy)

    @field_validator("api_key", mode="before")
    @classmethod
    def _normalize_api_key(cls, value: Any) -> str:
        if not isinstance(value, str):
            return ""
        return value.strip()

    @field_validator("profile", mode="before")
    @classmethod
    def _normalize_profile(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return DEFAULT_PROFILE
        return value.strip()

    @field_validator("field_prefs", mode="before")
    @classmethod
    def _merge_field_prefs(cls, value: Any) -> dict[str, bool]:
        return _normalize_field_prefs(value)

    @field_validator("enrichment", mode="before")
    @classmethod
    def _default_enrichment(cls, value: Any) -> Any:
        if value is None:
            return EnrichmentPolicy()
        return value

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class WatchLogConfigUpdate(BaseModel):
    """Partial configuration update; keys left unset keep their stored value."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    api_key: str | None = Field(default=None, alias="apiKey")
    profile: str | None = None
    field_prefs: dict[str, bool] | None = Field(default=None, alias="fieldPrefs")
    enrichment: EnrichmentPolicy | None = None


class WatchEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    video_id: str = Field(alias="videoId", min_length=1, max_length=64)
    url: str = Field(default="", max_length=2048)

    @field_validator("video_id", mode="before")
    @classmethod
    def _normalize_video_id(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value


class WatchEventAccepted(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ok: bool = True


class WatchLogPage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total: int
    entries: list[dict[str, Any]]
