"""Tests for the cleanup sweeper."""

import logging
from pathlib import Path

from vidmerge.staging import UploadedFile


def _staged(path, content=b"data"):
    path.write_bytes(content)
    return UploadedFile(stored_path=path, original_name=path.name, size_bytes=len(content))


class TestCleanup:
    def test_removes_every_artifact(self, tmp_path):
        from vidmerge.cleanup import cleanup

        inputs = [_staged(tmp_path / "1_a.mp4"), _staged(tmp_path / "2_b.mp4")]
        manifest = tmp_path / "concat_x.txt"
        manifest.write_text("file 'x'\n")
        output = tmp_path / "merged_x.mp4"
        output.write_bytes(b"out")

        assert cleanup(inputs, manifest, output) == []
        assert list(tmp_path.iterdir()) == []

    def test_idempotent(self, tmp_path):
        from vidmerge.cleanup import cleanup

        inputs = [_staged(tmp_path / "1_a.mp4")]
        manifest = tmp_path / "concat_x.txt"
        manifest.write_text("")

        cleanup(inputs, manifest, tmp_path / "merged_never_written.mp4")
        assert cleanup(inputs, manifest, tmp_path / "merged_never_written.mp4") == []

    def test_optional_paths(self, tmp_path):
        from vidmerge.cleanup import cleanup

        inputs = [_staged(tmp_path / "1_a.mp4")]
        assert cleanup(inputs) == []
        assert list(tmp_path.iterdir()) == []

    def test_one_failure_does_not_stop_the_rest(self, tmp_path, caplog):
        from vidmerge.cleanup import cleanup

        # A directory where a file is expected cannot be unlinked.
        stuck = tmp_path / "merged_x.mp4"
        stuck.mkdir()
        inputs = [_staged(tmp_path / "1_a.mp4"), _staged(tmp_path / "2_b.mp4")]
        manifest = tmp_path / "concat_x.txt"
        manifest.write_text("")

        with caplog.at_level(logging.WARNING, logger="vidmerge.cleanup"):
            leftovers = cleanup(inputs, manifest, stuck)

        assert leftovers == [Path(stuck)]
        assert sorted(p.name for p in tmp_path.iterdir()) == ["merged_x.mp4"]
        assert "could not remove" in caplog.text

    def test_failure_in_first_input_still_removes_output(self, tmp_path):
        from vidmerge.cleanup import cleanup

        stuck = tmp_path / "1_a.mp4"
        stuck.mkdir()
        inputs = [UploadedFile(stored_path=stuck, original_name="a.mp4", size_bytes=0)]
        output = tmp_path / "merged_x.mp4"
        output.write_bytes(b"out")

        cleanup(inputs, None, output)
        assert not output.exists()
