import subprocess
from unittest import mock

import pytest

from nsvpn.firewall import Firewall
from nsvpn.host_masquerade import (
    FirewallException,
    HostMasquerade,
    add_firewall_exception,
    add_masquerade_rule,
)
from nsvpn.network_interface import NetworkInterface

HOST = NetworkInterface("eth0")
NS = NetworkInterface("ns_d")
MASK = "10.200.1.0/24"


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    with mock.patch("nsvpn.nsexec.os.geteuid", return_value=0), mock.patch(
        "nsvpn.nsexec.subprocess.run"
    ) as run:
        yield run


def _commands(run):
    return [call.args[0] for call in run.call_args_list]


def test_iptables_masquerade_rule(runner):
    rule = add_masquerade_rule(MASK, HOST, Firewall.IpTables)
    assert _commands(runner) == [[
        "iptables", "-t", "nat", "-A", "POSTROUTING",
        "-s", MASK, "-o", "eth0", "-j", "MASQUERADE",
    ]]
    assert rule == HostMasquerade(MASK, HOST, Firewall.IpTables)


def test_nftables_masquerade_rule(runner):
    add_masquerade_rule(MASK, HOST, Firewall.NfTables)
    commands = _commands(runner)
    assert len(commands) == 3
    assert commands[0][:4] == ["nft", "add", "table", "inet"]
    assert commands[2][-2:] == ["counter", "masquerade"]
    assert MASK in commands[2] and "eth0" in commands[2]


def test_masquerade_close_deletes_when_no_locks(runner):
    rule = add_masquerade_rule(MASK, HOST, Firewall.IpTables)
    runner.reset_mock()
    assert rule.close() is None
    assert _commands(runner) == [[
        "iptables", "-t", "nat", "-D", "POSTROUTING",
        "-s", MASK, "-o", "eth0", "-j", "MASQUERADE",
    ]]
    assert rule.close() is None
    assert runner.call_count == 1


def test_masquerade_close_kept_when_other_namespace_locked(runner, tmp_path):
    lock_dir = tmp_path / "nsvpn" / "locks" / "other"
    lock_dir.mkdir(parents=True)
    (lock_dir / "1234").write_text("lock")
    rule = add_masquerade_rule(MASK, HOST, Firewall.NfTables)
    runner.reset_mock()
    assert rule.close() is None
    assert runner.call_count == 0


def test_masquerade_failure_raises(runner):
    runner.side_effect = subprocess.CalledProcessError(1, ["iptables"])
    with pytest.raises(RuntimeError, match="masquerade rule"):
        add_masquerade_rule(MASK, HOST, Firewall.IpTables)


def test_iptables_firewall_exception(runner):
    exc = add_firewall_exception(NS, HOST, Firewall.IpTables)
    assert _commands(runner) == [
        ["iptables", "-I", "FORWARD", "-i", "eth0", "-o", "ns_d", "-j", "ACCEPT"],
        ["iptables", "-I", "FORWARD", "-o", "eth0", "-i", "ns_d", "-j", "ACCEPT"],
    ]
    assert exc.host_interface == HOST and exc.ns_interface == NS


def test_firewall_exception_context_manager_removes(runner):
    created = add_firewall_exception(NS, HOST, Firewall.IpTables)
    assert isinstance(created, FirewallException)
    with created as entered:
        runner.reset_mock()
        assert entered is created
    deletes = _commands(runner)
    assert deletes == [
        ["iptables", "-D", "FORWARD", "-o", "eth0", "-i", "ns_d", "-j", "ACCEPT"],
        ["iptables", "-D", "FORWARD", "-i", "eth0", "-o", "ns_d", "-j", "ACCEPT"],
    ]


def test_nftables_firewall_exception_close(runner):
    exc = add_firewall_exception(NS, HOST, Firewall.NfTables)
    assert len(_commands(runner)) == 4
    runner.reset_mock()
    assert exc.close() is None
    assert _commands(runner)[0][:3] == ["nft", "delete", "table"]


def test_close_failure_raises(runner):
    exc = add_firewall_exception(NS, HOST, Firewall.NfTables)
    runner.side_effect = OSError("missing")
    with pytest.raises(RuntimeError, match="bridge firewall rule"):
        exc.close()