"""CLI for the HTTP service.

Usage:
    vidmerge serve
    vidmerge serve --config vidmerge.yaml --port 8080 --work-dir /var/tmp/vidmerge
"""

import argparse
import logging
from pathlib import Path

import uvicorn

from .app import create_app
from .settings import load_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="vidmerge serve",
        description="Run the video merge HTTP service.",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to a YAML settings file (default: $VIDMERGE_CONFIG)",
    )
    parser.add_argument("--host", default=None, help="Bind address")
    parser.add_argument("--port", type=int, default=None, help="Bind port")
    parser.add_argument(
        "--work-dir", default=None,
        help="Directory for staged uploads, manifests and outputs",
    )
    parsed = parser.parse_args(args)

    try:
        settings = load_settings(parsed.config)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    # Command-line flags override file and environment values.
    if parsed.host is not None:
        settings.host = parsed.host
    if parsed.port is not None:
        settings.port = parsed.port
    if parsed.work_dir is not None:
        settings.work_dir = Path(parsed.work_dir)

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    app = create_app(settings)
    print(f"Video merge server listening on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
