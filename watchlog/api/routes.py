from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from watchlog.dependencies import get_config_repository, get_pipeline, get_watch_log_repository
from watchlog.models.watch_contracts import (
    WatchEvent,
    WatchEventAccepted,
    WatchLogConfigUpdate,
    WatchLogPage,
)
from watchlog.repositories.config_repository import ConfigRepository
from watchlog.repositories.watch_log_repository import WatchLogRepository
from watchlog.services.watch_log_pipeline import WatchLogPipeline

router = APIRouter()


@router.post(
    "/watch-events",
    response_model=WatchEventAccepted,
    status_code=202,
    tags=["watch-log"],
    operation_id="submit_watch_event",
)
def submit_watch_event(
    event: WatchEvent,
    pipeline: Annotated[WatchLogPipeline, Depends(get_pipeline)],
) -> WatchEventAccepted:
    pipeline.submit(event)
    return WatchEventAccepted(ok=True)


@router.get(
    "/watch-log",
    response_model=WatchLogPage,
    tags=["watch-log"],
    operation_id="list_watch_log",
)
def list_watch_log(
    repository: Annotated[WatchLogRepository, Depends(get_watch_log_repository)],
    limit: Annotated[int, Query(ge=1, le=5_000)] = 100,
) -> WatchLogPage:
    entries = repository.list_entries()
    return WatchLogPage(total=len(entries), entries=entries[-limit:])


@router.get("/config", tags=["config"], operation_id="get_config")
def get_config(
    repository: Annotated[ConfigRepository, Depends(get_config_repository)],
) -> dict[str, Any]:
    return repository.load().to_storage()


@router.put("/config", tags=["config"], operation_id="update_config")
def update_config(
    update: WatchLogConfigUpdate,
    repository: Annotated[ConfigRepository, Depends(get_config_repository)],
) -> dict[str, Any]:
    return repository.apply_update(update).to_storage()
