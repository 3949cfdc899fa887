import ipaddress
import signal
import subprocess
import sys
from types import SimpleNamespace

import pytest

from nsvpn.openfortivpn import OpenFortiVpn, get_dns, get_remote_peer, start_openfortivpn

SAMPLE = (
    "INFO:   Got addresses: [10.0.0.5], ns [10.0.0.1, 10.0.0.2], "
    "ns_suffix [host.net;host2.com;host.com]\n"
)


def test_get_dns_parses_servers_and_suffixes():
    servers, suffixes = get_dns(SAMPLE)
    assert servers == [ipaddress.ip_address("10.0.0.1"), ipaddress.ip_address("10.0.0.2")]
    assert suffixes == ["host.net", "host2.com", "host.com"]


def test_get_dns_drops_duplicates_and_unspecified():
    text = SAMPLE + "ns [10.0.0.1, 0.0.0.0], ns_suffix [host.net;extra.org]\n"
    servers, suffixes = get_dns(text)
    assert servers == [ipaddress.ip_address("10.0.0.1"), ipaddress.ip_address("10.0.0.2")]
    assert suffixes == ["host.net", "host2.com", "host.com", "extra.org"]


def test_get_dns_empty_output():
    assert get_dns("nothing relevant here") == ([], [])


def test_get_dns_rejects_bad_address():
    with pytest.raises(ValueError):
        get_dns("ns [not-an-ip]")


def test_get_remote_peer_returns_last(tmp_path):
    log_file = tmp_path / "pppd.log"
    log_file.write_text(
        "remote IP address 10.1.1.1\nsomething\nremote IP address 10.2.2.2\n"
    )
    assert get_remote_peer(log_file) == ipaddress.IPv4Address("10.2.2.2")


def test_get_remote_peer_without_address(tmp_path):
    log_file = tmp_path / "pppd.log"
    log_file.write_text("local IP address 10.1.1.1\n")
    with pytest.raises(ValueError):
        get_remote_peer(log_file)


def test_get_remote_peer_missing_file(tmp_path):
    with pytest.raises(OSError):
        get_remote_peer(tmp_path / "absent.log")


def test_close_kills_process():
    process = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
    vpn = OpenFortiVpn(process.pid)
    vpn.close()
    assert process.wait(timeout=10) == -signal.SIGKILL
    vpn.close()
    assert process.returncode == -signal.SIGKILL


def test_start_requires_binary(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(RuntimeError, match="OpenFortiVPN not found"):
        start_openfortivpn(SimpleNamespace(name="ns0"), tmp_path / "forti.conf")