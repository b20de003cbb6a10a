from __future__ import annotations

import argparse
import json
import sys

from watchlog.dependencies import get_pipeline, get_settings, reset_cached_dependencies
from watchlog.logging_config import configure_application_logging
from watchlog.models.watch_contracts import WatchEvent


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run a single watch event through the watch-log pipeline.",
    )
    parser.add_argument("video_id", help="Video id (for example: dQw4w9WgXcQ).")
    parser.add_argument(
        "--url",
        default=None,
        help="Page URL the video was watched on. Defaults to the standard watch URL.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_application_logging(get_settings())
    url = args.url or f"https://www.youtube.com/watch?v={args.video_id}"

    try:
        outcome = get_pipeline().handle(WatchEvent(videoId=args.video_id, url=url))
    finally:
        reset_cached_dependencies()

    print(
        json.dumps(
            {
                "status": outcome.status,
                "stage": outcome.stage,
                "entry": outcome.entry,
                "error": outcome.error,
            },
            indent=2,
            sort_keys=True,
        )
    )
    return 0 if outcome.status != "failed" else 1


if __name__ == "__main__":
    sys.exit(main())
