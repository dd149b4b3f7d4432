"""Tests for the liveness marker."""

import os

from overmind.liveness import LivenessMarker


class TestLivenessMarker:
    """Tests for LivenessMarker."""

    def test_beat_writes_heartbeat(self, tmp_path):
        """Test a heartbeat records lane and pid."""
        marker = LivenessMarker(tmp_path / "overmind_worker_works")
        marker.beat(lane=1, pid=4242)
        data = marker.read()
        assert data["lane"] == 1
        assert data["pid"] == 4242
        assert "timestamp" in data

    def test_beat_replaces_previous(self, tmp_path):
        """Test a new heartbeat replaces the old value."""
        marker = LivenessMarker(tmp_path / "marker")
        marker.beat(0, 1)
        marker.beat(1, 2)
        assert marker.read()["pid"] == 2

    def test_beat_leaves_no_temp_files(self, tmp_path):
        """Test the atomic write cleans up after itself."""
        marker = LivenessMarker(tmp_path / "marker")
        marker.beat(0, os.getpid())
        assert os.listdir(tmp_path) == ["marker"]

    def test_clear_is_idempotent(self, tmp_path):
        """Test clearing a missing marker is fine."""
        marker = LivenessMarker(tmp_path / "marker")
        marker.beat(0, 1)
        marker.clear()
        marker.clear()
        assert not marker.exists()

    def test_read_missing(self, tmp_path):
        """Test reading without a heartbeat returns None."""
        assert LivenessMarker(tmp_path / "marker").read() is None

    def test_read_garbage(self, tmp_path):
        """Test an unparsable marker reads as None."""
        path = tmp_path / "marker"
        path.write_text("{not json")
        assert LivenessMarker(path).read() is None
