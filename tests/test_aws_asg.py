"""
Tests for the Auto Scaling Group node pool (aws CLI mocked)
"""
import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from conftest import make_node
from nodescaler.backend.aws_asg import AwsAutoScalingNodePool, instance_id_from_provider_id
from nodescaler.errors import BackendRequestFailed


def _proc(payload=None):
    p = MagicMock()
    p.stdout = json.dumps(payload) if payload is not None else ""
    return p


def _describe(desired):
    return _proc({"AutoScalingGroups": [{"AutoScalingGroupName": "games", "DesiredCapacity": desired}]})


@pytest.fixture
def pool():
    return AwsAutoScalingNodePool("games", region="eu-central-1", profile="ops")


class TestProviderId:
    @pytest.mark.parametrize("raw,expected", [
        ("aws:///eu-central-1a/i-0abc123", "i-0abc123"),
        ("aws:///eu-central-1a/i-0abc123/", "i-0abc123"),
        ("gce://project/zone/vm-1", None),
        ("aws:///eu-central-1a/", None),
        (None, None),
    ])
    def test_mapping(self, raw, expected):
        assert instance_id_from_provider_id(raw) == expected


class TestIncreaseToSize:
    @patch("nodescaler.backend.aws_asg.subprocess.run")
    def test_grows_when_larger(self, mock_run, pool):
        mock_run.side_effect = [_describe(3), _proc()]

        pool.increase_to_size(5)

        assert mock_run.call_count == 2
        cmd = mock_run.call_args_list[1][0][0]
        assert cmd[:3] == ["aws", "autoscaling", "set-desired-capacity"]
        assert "--desired-capacity" in cmd and "5" in cmd
        assert cmd[-4:] == ["--region", "eu-central-1", "--profile", "ops"]

    @patch("nodescaler.backend.aws_asg.subprocess.run")
    @pytest.mark.parametrize("size", [2, 3])
    def test_ignores_smaller_or_equal(self, mock_run, pool, size):
        mock_run.return_value = _describe(3)
        pool.increase_to_size(size)
        assert mock_run.call_count == 1

    @patch("nodescaler.backend.aws_asg.subprocess.run")
    def test_unknown_group(self, mock_run, pool):
        mock_run.return_value = _proc({"AutoScalingGroups": []})
        with pytest.raises(BackendRequestFailed, match="not found"):
            pool.increase_to_size(5)

    @patch("nodescaler.backend.aws_asg.subprocess.run")
    def test_cli_failure(self, mock_run, pool):
        mock_run.side_effect = subprocess.CalledProcessError(255, ["aws"], stderr="AccessDenied")
        with pytest.raises(BackendRequestFailed, match="AccessDenied"):
            pool.increase_to_size(5)

    @patch("nodescaler.backend.aws_asg.subprocess.run")
    def test_missing_cli(self, mock_run, pool):
        mock_run.side_effect = FileNotFoundError("aws")
        with pytest.raises(BackendRequestFailed):
            pool.increase_to_size(5)


class TestDeleteNodes:
    @patch("nodescaler.backend.aws_asg.subprocess.run")
    def test_terminates_each_instance(self, mock_run, pool):
        mock_run.return_value = _proc({"Activity": {}})
        nodes = [
            make_node("c1", provider_id="aws:///eu-central-1a/i-111"),
            make_node("c2", provider_id="aws:///eu-central-1b/i-222"),
        ]

        pool.delete_nodes(nodes)

        cmds = [c[0][0] for c in mock_run.call_args_list]
        assert [c[c.index("--instance-id") + 1] for c in cmds] == ["i-111", "i-222"]
        assert all("--should-decrement-desired-capacity" in c for c in cmds)

    @patch("nodescaler.backend.aws_asg.subprocess.run")
    def test_best_effort_reports_failures(self, mock_run, pool):
        mock_run.side_effect = [
            subprocess.CalledProcessError(255, ["aws"], stderr="throttled"),
            _proc({"Activity": {}}),
        ]
        nodes = [
            make_node("c1", provider_id="aws:///eu-central-1a/i-111"),
            make_node("c2", provider_id="aws:///eu-central-1b/i-222"),
            make_node("c3", provider_id=None),
        ]

        with pytest.raises(BackendRequestFailed) as exc:
            pool.delete_nodes(nodes)

        # the second instance is still terminated
        assert mock_run.call_count == 2
        assert "c1" in str(exc.value) and "c3" in str(exc.value)
        assert "c2" not in str(exc.value)

    @patch("nodescaler.backend.aws_asg.subprocess.run")
    def test_garbled_output(self, mock_run, pool):
        p = MagicMock()
        p.stdout = "<html>proxy error</html>"
        mock_run.return_value = p
        with pytest.raises(BackendRequestFailed, match="unexpected aws cli output"):
            pool.increase_to_size(5)
