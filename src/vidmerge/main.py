"""Subcommand dispatcher for vidmerge.

Usage:
    vidmerge serve  [--config vidmerge.yaml] [--host ...] [--port ...]
    vidmerge merge  a.mp4 b.mp4 [c.mp4 ...] --output merged.mp4
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="vidmerge",
        description="Concatenate uploaded or local videos with ffmpeg.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("serve", help="Run the HTTP merge service")
    subparsers.add_parser("merge", help="Merge local video files in order")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    if parsed.command == "serve":
        from .serve_cli import main as serve_main
        serve_main(remaining)
    elif parsed.command == "merge":
        from .merge_cli import main as merge_main
        merge_main(remaining)


if __name__ == "__main__":
    main()
