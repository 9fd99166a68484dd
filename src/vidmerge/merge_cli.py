"""CLI for merging local files -- same pipeline as the HTTP service.

Usage:
    vidmerge merge intro.mp4 talk.mp4 outro.mp4 --output merged.mp4
    vidmerge merge a.mp4 b.mp4 --output merged.mp4 --timeout 120
"""

import argparse
import sys
from pathlib import Path

from .errors import VidmergeError
from .jobs import merge_files


def _get_duration(path):
    """Probe video duration in seconds using moviepy."""
    from moviepy import VideoFileClip

    with VideoFileClip(str(path)) as clip:
        return clip.duration


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="vidmerge merge",
        description="Concatenate video files in the given order.",
    )
    parser.add_argument("inputs", nargs="+", help="Input videos, in merge order")
    parser.add_argument("--output", required=True, help="Output mp4 path")
    parser.add_argument(
        "--ffmpeg", default=None,
        help="ffmpeg binary (default: the one bundled with imageio-ffmpeg)",
    )
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Kill ffmpeg after this many seconds",
    )
    parsed = parser.parse_args(args)

    if len(parsed.inputs) < 2:
        parser.error("merge needs at least 2 input files")

    missing = [p for p in parsed.inputs if not Path(p).is_file()]
    if missing:
        msg = f"Missing {len(missing)} input file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        parser.error(msg)

    print(f"Merging {len(parsed.inputs)} files...")
    for i, p in enumerate(parsed.inputs):
        size_mb = Path(p).stat().st_size / (1024 * 1024)
        print(f"  [{i}] {size_mb:.1f} MB  {p}")

    try:
        output = merge_files(
            parsed.inputs, parsed.output,
            ffmpeg=parsed.ffmpeg, timeout=parsed.timeout,
        )
    except VidmergeError as exc:
        print(f"Error: {exc.title}: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"\nDone: {output} ({_get_duration(output):.1f}s)")


if __name__ == "__main__":
    main()
