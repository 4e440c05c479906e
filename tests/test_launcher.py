"""
Tests for the command line launcher (dry-run only)
"""
import pytest

from conftest import make_node, make_pod, make_snapshot
from nodescaler.snapshot.io import load_snapshot_from_file, save_snapshot_to_file
from run_nodescaler import main


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("CPU_REQUEST", "100")
    monkeypatch.setenv("BUFFER_COUNT", "5")
    monkeypatch.setenv("SHUTDOWN", "60s")


@pytest.fixture
def snapshot_file(tmp_path):
    path = tmp_path / "cluster.json"
    snap = make_snapshot(
        [make_node("n1"), make_node("n2")],
        [make_pod("a", "n1", 1000), make_pod("b", "n2", 800)],
    )
    save_snapshot_to_file(snap, path)
    return path


class TestLauncher:
    def test_once_dry_run(self, env, snapshot_file):
        assert main(["--once", "--dry-run", str(snapshot_file)]) == 0

    def test_dump_snapshot(self, env, snapshot_file, tmp_path):
        out = tmp_path / "copy.json"

        assert main(["--dry-run", str(snapshot_file), "--dump-snapshot", str(out)]) == 0

        snap = load_snapshot_from_file(out)
        assert sorted(n.name for n in snap.nodes) == ["n1", "n2"]

    def test_bad_config(self, monkeypatch, snapshot_file):
        monkeypatch.delenv("CPU_REQUEST", raising=False)
        monkeypatch.setenv("BUFFER_COUNT", "5")
        assert main(["--once", "--dry-run", str(snapshot_file)]) == 2

    def test_live_mode_needs_asg(self, env):
        with pytest.raises(SystemExit):
            main(["--once"])
