"""Shared test fixtures for vidmerge tests."""

import subprocess

import pytest
import imageio_ffmpeg

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


def _color_video(out, color, duration):
    """Render a solid-color test video (320x240, 10fps) with silent audio."""
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", f"color=c={color}:s=320x240:d={duration}:r=10",
            "-f", "lavfi", "-i", "anullsrc=r=44100:cl=mono",
            "-shortest",
            "-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p",
            "-c:a", "aac", "-b:a", "32k",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out


@pytest.fixture
def ffmpeg_exe():
    return _FFMPEG


@pytest.fixture
def red_clip(tmp_path):
    """2-second red clip, the first half of the end-to-end merges."""
    return _color_video(tmp_path / "clip1.mp4", "red", 2)


@pytest.fixture
def blue_clip(tmp_path):
    """2-second blue clip, the second half of the end-to-end merges."""
    return _color_video(tmp_path / "clip2.mp4", "blue", 2)


@pytest.fixture
def work_dir(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    return d


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """Factory for stand-in ffmpeg executables running a given shell body."""

    def _make(body):
        script = tmp_path / "fake-ffmpeg.sh"
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(0o755)
        return str(script)

    return _make
