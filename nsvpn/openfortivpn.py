"""Running OpenFortiVPN inside a network namespace."""

from __future__ import annotations

import ipaddress
import logging
import os
import re
import shutil
import signal
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from nsvpn import nsexec

log = logging.getLogger(__name__)

PPPD_LOG = Path("/tmp/pppd.log")
TUNNEL_UP = "Tunnel is up and running"

_REMOTE_IP = re.compile(r"remote IP address (?P<ip>\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})")
_NS = re.compile(r"ns \[(?P<ip>[^\]]+)\]")
_NS_SUFFIX = re.compile(r"ns_suffix \[(?P<suffix>[^\]]+)\]")
_UNSPECIFIED = ipaddress.IPv4Address("0.0.0.0")

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass
class OpenFortiVpn:
    """A running OpenFortiVPN process; close() kills it."""

    pid: int
    _closed: bool = field(default=False, init=False, repr=False, compare=False)

    def close(self) -> None:
        """Kill the OpenFortiVPN process."""
        if self._closed:
            return
        self._closed = True
        try:
            os.kill(self.pid, signal.SIGKILL)
        except OSError as exc:
            log.error("Failed to kill OpenFortiVPN (pid: %s): %s", self.pid, exc)
        else:
            log.debug("Killed OpenFortiVPN (pid: %s)", self.pid)

    def __enter__(self) -> "OpenFortiVpn":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def get_remote_peer(pppd_log: Union[str, Path]) -> ipaddress.IPv4Address:
    """Return the last remote peer address reported in the pppd log."""
    path = Path(pppd_log)
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise OSError(f"Opening pppd log file: {path}: {exc}") from exc
    peers = [ipaddress.IPv4Address(match.group("ip")) for match in _REMOTE_IP.finditer(text)]
    if not peers:
        raise ValueError("Could not find remote IP address in pppd log")
    return peers[-1]


def get_dns(stdout: str) -> tuple[list[IpAddress], list[str]]:
    """Extract DNS servers and search suffixes from OpenFortiVPN output.

    The relevant line looks like:
    Got addresses: [x.x.x.x], ns [y.y.y.y, y.y.y.y], ns_suffix [a.net;b.com]
    """
    servers: list[IpAddress] = []
    for match in _NS.finditer(stdout):
        for raw in match.group("ip").split(", "):
            server = ipaddress.ip_address(raw)
            if server not in servers and server != _UNSPECIFIED:
                servers.append(server)

    suffixes: list[str] = []
    for match in _NS_SUFFIX.finditer(stdout):
        for suffix in match.group("suffix").split(";"):
            if suffix not in suffixes:
                suffixes.append(suffix)

    log.debug("Found OpenFortiVPN DNS ips: %s, ns suffixes: %s", servers, suffixes)
    return servers, suffixes


def start_openfortivpn(
    netns: Any,
    config_file: Union[str, Path],
    hosts_entries: Optional[Sequence[str]] = None,
    allow_host_access: bool = False,
) -> OpenFortiVpn:
    """Launch OpenFortiVPN in the namespace and route its traffic through the tunnel."""
    if shutil.which("openfortivpn") is None:
        log.error("OpenFortiVPN not found. Is OpenFortiVPN installed and on PATH?")
        raise RuntimeError("OpenFortiVPN not found. Is OpenFortiVPN installed and on PATH?")

    log.info("Launching OpenFortiVPN...")
    try:
        PPPD_LOG.unlink()
    except OSError:
        pass

    try:
        process = nsexec.exec_no_block(
            netns.name, ["openfortivpn", "-c", str(config_file)], capture_output=True
        )
    except OSError as exc:
        raise RuntimeError("Failed to launch OpenFortiVPN - is openfortivpn installed?") from exc

    log.info(
        "Waiting for OpenFortiVPN to establish connection - "
        "you may be prompted on your 2FA device"
    )
    log.info("If your VPN password is not in the OpenFortiVPN config file then enter it here now")

    lines = []
    for raw in iter(process.stdout.readline, b""):
        line = raw.decode("utf-8", errors="replace")
        lines.append(line)
        sys.stdout.write(line)
        sys.stdout.flush()
        if TUNNEL_UP in line:
            break
    else:
        raise RuntimeError("OpenFortiVPN exited before the tunnel came up")
    output = "".join(lines)
    log.debug("Full OpenFortiVPN stdout: %r", output)

    remote_peer = get_remote_peer(PPPD_LOG)
    log.debug("Found OpenFortiVPN route: %s", remote_peer)
    nsexec.exec_in(netns.name, ["ip", "route", "del", "default"])
    nsexec.exec_in(netns.name, ["ip", "route", "add", "default", "via", str(remote_peer)])

    servers, suffixes = get_dns(output)
    netns.dns_config(servers, suffixes, hosts_entries, allow_host_access)

    vpn = OpenFortiVpn(process.pid)
    netns.openfortivpn = vpn
    return vpn