import subprocess
from types import SimpleNamespace
from unittest import mock

import pytest

from nsvpn.application_wrapper import ApplicationWrapper, shared_process_conflicts

_REAL_POPEN = subprocess.Popen
NETNS = SimpleNamespace(name="testns")


def _popen_without_netns(args, **kwargs):
    return _REAL_POPEN(args[4:], **kwargs)


@pytest.fixture
def popen():
    with mock.patch("nsvpn.nsexec.subprocess.Popen", side_effect=_popen_without_netns) as p:
        yield p


def test_conflict_detected():
    assert shared_process_conflicts(["firefox", "--new-window"], ["bash", "firefox"]) == ["firefox"]


def test_no_conflict_when_not_running():
    assert shared_process_conflicts(["chromium"], ["bash"]) == []


def test_conflicts_follow_fixed_order():
    apps = ["firefox", "chromium"]
    assert shared_process_conflicts(apps, apps) == ["chromium", "firefox"]


def test_wait_with_output_success(popen):
    wrapper = ApplicationWrapper(NETNS, "true")
    result = wrapper.wait_with_output()
    assert result.returncode == 0
    assert popen.call_args.args[0] == ["ip", "netns", "exec", "testns", "true"]


def test_wait_with_output_failure_code(popen):
    result = ApplicationWrapper(NETNS, "false").wait_with_output()
    assert result.returncode == 1


def test_user_and_working_directory_passed(popen, tmp_path):
    with mock.patch("nsvpn.nsexec.subprocess.Popen") as fake:
        ApplicationWrapper(NETNS, "app --flag 'a b'", user="alice",
                           working_directory=tmp_path, port_forwarding="fw")
    args = fake.call_args.args[0]
    assert args[4:8] == ["sudo", "--preserve-env", "--user", "alice"]
    assert args[-3:] == ["app", "--flag", "a b"]
    assert fake.call_args.kwargs["cwd"] == tmp_path


def test_port_forwarding_kept(popen):
    wrapper = ApplicationWrapper(NETNS, "true", port_forwarding="fw")
    wrapper.wait_with_output()
    assert wrapper.port_forwarding == "fw"


def test_unbalanced_quotes_rejected():
    with pytest.raises(ValueError):
        ApplicationWrapper(NETNS, "app 'unclosed")