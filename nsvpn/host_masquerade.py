"""NAT and forwarding rules on the host for traffic leaving a namespace."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from typing import Sequence

from nsvpn import nsexec
from nsvpn.firewall import Firewall
from nsvpn.network_interface import NetworkInterface

log = logging.getLogger(__name__)

NAT_TABLE = "nsvpn_nat"
BRIDGE_TABLE = "nsvpn_bridge"


def _run(command: Sequence[str], message: str) -> None:
    try:
        nsexec.sudo_command(command)
    except (subprocess.CalledProcessError, OSError) as exc:
        raise RuntimeError(message) from exc


def _other_namespaces_active() -> bool:
    """Return True unless it is certain no namespace holds a lockfile."""
    try:
        namespaces = nsexec.lock_namespaces()
    except OSError as exc:
        log.debug("Could not read remaining namespaces: %s", exc)
        return True
    log.debug("Remaining namespaces: %s", namespaces)
    return bool(namespaces)


@dataclass
class HostMasquerade:
    """A masquerade rule routing namespace traffic out of a host interface."""

    ip_mask: str
    interface: NetworkInterface
    firewall: Firewall
    _closed: bool = field(default=False, init=False, repr=False, compare=False)

    def close(self) -> None:
        """Remove the rule, unless other namespaces are still active."""
        if self._closed:
            return
        self._closed = True
        if _other_namespaces_active():
            return
        message = (
            f"Failed to delete {{}} masquerade rule, ip_mask: {self.ip_mask}, "
            f"interface: {self.interface.name}"
        )
        if self.firewall is Firewall.IpTables:
            _run(
                [
                    "iptables", "-t", "nat", "-D", "POSTROUTING",
                    "-s", self.ip_mask, "-o", self.interface.name,
                    "-j", "MASQUERADE",
                ],
                message.format("iptables"),
            )
        else:
            _run(
                ["nft", "delete", "table", "inet", NAT_TABLE],
                message.format("nftables"),
            )

    def __enter__(self) -> "HostMasquerade":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def add_masquerade_rule(
    ip_mask: str, interface: NetworkInterface, firewall: Firewall
) -> HostMasquerade:
    """Route traffic from the namespace subnet out of the given interface."""
    details = f"ip_mask: {ip_mask}, interface: {interface.name}"
    if firewall is Firewall.IpTables:
        _run(
            [
                "iptables", "-t", "nat", "-A", "POSTROUTING",
                "-s", ip_mask, "-o", interface.name, "-j", "MASQUERADE",
            ],
            f"Failed to add iptables masquerade rule, {details}",
        )
    else:
        _run(
            ["nft", "add", "table", "inet", NAT_TABLE],
            f"Failed to create nft table {NAT_TABLE}",
        )
        _run(
            [
                "nft",
                f"add chain inet {NAT_TABLE} postrouting "
                "{ type nat hook postrouting priority 100 ; }",
            ],
            f"Failed to create nft postrouting chain in {NAT_TABLE}",
        )
        _run(
            [
                "nft", "add", "rule", "inet", NAT_TABLE, "postrouting",
                "oifname", interface.name, "ip", "saddr", ip_mask,
                "counter", "masquerade",
            ],
            f"Failed to add nftables masquerade rule, {details}",
        )
    return HostMasquerade(ip_mask, interface, firewall)


@dataclass
class FirewallException:
    """Forwarding exceptions between a host interface and a namespace interface."""

    host_interface: NetworkInterface
    ns_interface: NetworkInterface
    firewall: Firewall
    _closed: bool = field(default=False, init=False, repr=False, compare=False)

    def close(self) -> None:
        """Remove the exceptions, unless other namespaces are still active."""
        if self._closed:
            return
        self._closed = True
        if _other_namespaces_active():
            return
        host = self.host_interface.name
        ns = self.ns_interface.name
        details = f"host interface: {host}, namespace interface: {ns}"
        if self.firewall is Firewall.IpTables:
            _run(
                ["iptables", "-D", "FORWARD", "-o", host, "-i", ns, "-j", "ACCEPT"],
                f"Failed to delete iptables host output rule, {details}",
            )
            _run(
                ["iptables", "-D", "FORWARD", "-i", host, "-o", ns, "-j", "ACCEPT"],
                f"Failed to delete iptables host input rule, {details}",
            )
        else:
            _run(
                ["nft", "delete", "table", "inet", BRIDGE_TABLE],
                f"Failed to delete nftables namespace bridge firewall rule, {details}",
            )

    def __enter__(self) -> "FirewallException":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def add_firewall_exception(
    ns_interface: NetworkInterface,
    host_interface: NetworkInterface,
    firewall: Firewall,
) -> FirewallException:
    """Allow forwarding between the namespace and the host in both directions."""
    host = host_interface.name
    ns = ns_interface.name
    details = f"host interface: {host}, namespace interface: {ns}"
    if firewall is Firewall.IpTables:
        _run(
            ["iptables", "-I", "FORWARD", "-i", host, "-o", ns, "-j", "ACCEPT"],
            f"Failed to add iptables host input exception, {details}",
        )
        _run(
            ["iptables", "-I", "FORWARD", "-o", host, "-i", ns, "-j", "ACCEPT"],
            f"Failed to add iptables host output exception, {details}",
        )
    else:
        _run(
            ["nft", "add", "table", "inet", BRIDGE_TABLE],
            f"Failed to create nft table {BRIDGE_TABLE}",
        )
        _run(
            [
                "nft",
                f"add chain inet {BRIDGE_TABLE} forward "
                "{ type filter hook forward priority -10 ; }",
            ],
            f"Failed to create nft forward chain in {BRIDGE_TABLE}",
        )
        _run(
            [
                "nft", "add", "rule", "inet", BRIDGE_TABLE, "forward",
                "iifname", host, "oifname", ns, "counter", "accept",
            ],
            f"Failed to add nftables bridge input accept rule, {details}",
        )
        _run(
            [
                "nft", "add", "rule", "inet", BRIDGE_TABLE, "forward",
                "oifname", host, "iifname", ns, "counter", "accept",
            ],
            f"Failed to add nftables bridge output accept rule, {details}",
        )
    return FirewallException(host_interface, ns_interface, firewall)