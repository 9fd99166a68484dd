#!/usr/bin/env python3
"""Generate synthetic clips for trying out the merge service.

Creates solid-color clips in examples/demo-clips/. Merged in order, the
result should show red, then blue, then green, with a duration equal to
the sum of the inputs.

Usage:
    python examples/generate_demo_clips.py
    vidmerge merge examples/demo-clips/clip1.mp4 examples/demo-clips/clip2.mp4 \
        --output /tmp/merged.mp4

    # Or against a running `vidmerge serve`:
    curl -F videos=@examples/demo-clips/clip1.mp4 \
         -F videos=@examples/demo-clips/clip2.mp4 \
         -o merged.mp4 http://localhost:3000/merge
"""

from pathlib import Path

from moviepy import ColorClip

OUTPUT_DIR = Path(__file__).resolve().parent / "demo-clips"
SIZE = (320, 240)
FPS = 30

CLIPS = [
    ("clip1", (200, 30, 30), 2.0),  # red
    ("clip2", (30, 30, 200), 3.0),  # blue
    ("clip3", (30, 170, 30), 1.5),  # green
]


def main():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    for name, color, duration in CLIPS:
        out = OUTPUT_DIR / f"{name}.mp4"
        if out.exists():
            print(f"  skip {name} (exists)")
            continue

        clip = ColorClip(size=SIZE, color=color, duration=duration)
        clip.write_videofile(str(out), fps=FPS, logger=None)
        print(f"  wrote {name} ({duration}s)")

    print(f"\nDone. {len(CLIPS)} clips in {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
