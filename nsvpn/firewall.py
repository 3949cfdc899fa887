"""Firewall backends and IPv6 blocking inside a namespace."""

from __future__ import annotations

from enum import Enum

from nsvpn.nsexec import exec_in


class Firewall(Enum):
    IpTables = "IpTables"
    NfTables = "NfTables"

    def __str__(self) -> str:
        return self.value


def ipv6_drop_commands(netns_name: str, firewall: Firewall) -> list[list[str]]:
    """Return the commands that drop all IPv6 traffic in the namespace."""
    if firewall is Firewall.IpTables:
        commands = []
        for chain in ("INPUT", "FORWARD", "OUTPUT"):
            commands.append(["ip6tables", "-P", chain, "DROP"])
            commands.append(["ip6tables", "-I", chain, "-j", "DROP"])
        return commands
    commands = [["nft", "add", "table", "ip6", netns_name]]
    for hook in ("input", "output", "forward"):
        commands.append([
            "nft",
            "add",
            "chain",
            "ip6",
            netns_name,
            f"drop_ipv6_{hook}",
            f"{{ type filter hook {hook} priority -1 ; policy drop; }}",
        ])
    return commands


def disable_ipv6(netns_name: str, firewall: Firewall) -> None:
    """Block IPv6 traffic inside the namespace."""
    for command in ipv6_drop_commands(netns_name, firewall):
        exec_in(netns_name, command)