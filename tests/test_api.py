"""
Tests for the status HTTP API
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import make_node, make_pod
from nodescaler.api.server import app, attach_runner
from nodescaler.backend.memory import InMemoryCluster
from nodescaler.runner import TickRunner
from nodescaler.scaling.controller import ScalingController


@pytest.fixture
def cluster():
    return InMemoryCluster(
        nodes=[make_node("n1"), make_node("n2"), make_node("n3")],
        pods=[
            make_pod("a", "n1", 1000),
            make_pod("b", "n2", 1000),
            make_pod("game", "n3", 700, protected=True),
        ],
    )


@pytest.fixture
def runner(cluster, config):
    r = TickRunner(ScalingController(cluster, cluster, config), timedelta(seconds=30))
    attach_runner(r)
    yield r
    attach_runner(None)


@pytest.fixture
def http():
    return TestClient(app)


class TestEndpoints:
    def test_not_configured(self, http):
        attach_runner(None)
        assert http.get("/healthz").status_code == 503

    def test_healthz(self, http, runner):
        resp = http.get("/healthz")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "loop_running": False}

    def test_status_before_any_tick(self, http, runner):
        body = http.get("/status").json()
        assert body["ticks_total"] == 0
        assert body["last_tick"] is None

    def test_manual_tick(self, http, runner, cluster):
        resp = http.post("/tick")

        assert resp.status_code == 200
        body = resp.json()
        assert body["outcome"] == "grown"
        assert body["available_blocks"] == 3
        assert body["requested_size"] == 4
        assert ("increase", 4) in cluster.calls

        status = http.get("/status").json()
        assert status["ticks_total"] == 1
        assert status["last_tick"]["outcome"] == "grown"

    def test_tick_in_progress(self, http, runner):
        runner._lock.acquire()
        try:
            assert http.post("/tick").status_code == 409
        finally:
            runner._lock.release()

    def test_snapshot(self, http, runner):
        body = http.get("/snapshot").json()

        assert body["block_size_cpu_m"] == 100
        assert body["buffer_count"] == 5
        assert body["available_blocks"] == 3
        n3 = next(n for n in body["nodes"] if n["node"] == "n3")
        assert n3["used_cpu_m"] == 700
        assert n3["free_cpu_m"] == 300
        assert n3["protected_pods_count"] == 1

    def test_snapshot_source_down(self, http, runner, cluster):
        cluster.fail_on.add("list")
        assert http.get("/snapshot").status_code == 502
