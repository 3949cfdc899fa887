"""Network namespaces and the lockfiles that track their users."""

from __future__ import annotations

import ipaddress
import json
import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from nsvpn import nsexec
from nsvpn.dns_config import DnsConfig, write_dns_config
from nsvpn.firewall import Firewall
from nsvpn.host_masquerade import (
    FirewallException,
    HostMasquerade,
    add_firewall_exception,
    add_masquerade_rule,
)
from nsvpn.network_interface import NetworkInterface
from nsvpn.vpn import Protocol

log = logging.getLogger(__name__)

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def _lock_dir(name: str) -> Path:
    return nsexec.config_dir() / nsexec.LOCKS_SUBDIR / name


def _sudo(command: Sequence[str], message: str) -> None:
    try:
        nsexec.sudo_command(command)
    except (subprocess.CalledProcessError, OSError) as exc:
        raise RuntimeError(message) from exc


def _check_subnet(target_subnet: int) -> None:
    if not 0 <= target_subnet <= 255:
        raise ValueError(f"Subnet must be in the range 0-255, got {target_subnet}")


@dataclass(frozen=True)
class _VethNames:
    source: str
    dest: str


@dataclass(frozen=True)
class VethPairIPs:
    """Addresses of the host and namespace ends of the veth pair."""

    host_ip: IpAddress
    namespace_ip: IpAddress

    def to_dict(self) -> dict:
        return {"host_ip": str(self.host_ip), "namespace_ip": str(self.namespace_ip)}

    @classmethod
    def from_dict(cls, data: dict) -> "VethPairIPs":
        return cls(
            ipaddress.ip_address(data["host_ip"]),
            ipaddress.ip_address(data["namespace_ip"]),
        )


@dataclass
class NetworkNamespace:
    """A named network namespace and the resources set up for it."""

    name: str
    provider: str
    protocol: Protocol
    firewall: Firewall
    predown: Optional[str] = None
    predown_user: Optional[str] = None
    predown_group: Optional[str] = None
    config_file: Optional[Path] = None
    veth_pair: Any = None
    veth_pair_ips: Optional[VethPairIPs] = None
    dns: Optional[DnsConfig] = None
    host_masquerade: Optional[HostMasquerade] = None
    firewall_exception: Optional[FirewallException] = None
    openfortivpn: Any = None
    etc_root: Path = Path("/etc")
    _closed: bool = field(default=False, init=False, repr=False, compare=False)

    @classmethod
    def from_existing(cls, name: str) -> "NetworkNamespace":
        """Load a namespace described by one of its lockfiles."""
        lock_dir = _lock_dir(name)
        lock_dir.mkdir(parents=True, exist_ok=True)
        log.debug("Trying to read lockfile: %s", lock_dir)
        lockfile = next(iter(sorted(lock_dir.iterdir())), None)
        if lockfile is None:
            raise FileNotFoundError(f"No lockfile in {lock_dir}")
        data = json.loads(lockfile.read_text(encoding="utf-8"))
        ns = Lockfile.from_dict(data).ns
        log.info("Using existing network namespace: %s", name)
        return ns

    def set_config_file(self, config_file: Optional[Union[str, Path]]) -> None:
        self.config_file = Path(config_file) if config_file is not None else None

    def add_loopback(self) -> None:
        """Bring up the loopback interface inside the namespace."""
        nsexec.exec_in(self.name, ["ip", "addr", "add", "127.0.0.1/8", "dev", "lo"])
        nsexec.exec_in(self.name, ["ip", "link", "set", "lo", "up"])

    def add_routing(
        self,
        target_subnet: int,
        hosts: Optional[Sequence[IpAddress]] = None,
        allow_host_access: bool = False,
    ) -> None:
        """Address the veth pair and route namespace traffic through the host."""
        _check_subnet(target_subnet)
        if self.veth_pair is None:
            raise RuntimeError("Veth pair undefined")
        veth_dest = self.veth_pair.dest
        veth_source = self.veth_pair.source

        ip = f"10.200.{target_subnet}.1/24"
        ip_nosub = f"10.200.{target_subnet}.1"
        veth_source_ip = f"10.200.{target_subnet}.2/24"
        veth_source_ip_nosub = f"10.200.{target_subnet}.2"

        _sudo(
            ["ip", "addr", "add", ip, "dev", veth_dest],
            f"Failed to assign static IP to veth destination: {veth_dest}",
        )
        nsexec.exec_in(self.name, ["ip", "addr", "add", veth_source_ip, "dev", veth_source])
        nsexec.exec_in(
            self.name,
            ["ip", "route", "add", "default", "via", ip_nosub, "dev", veth_source],
        )
        for host in hosts or ():
            nsexec.exec_in(
                self.name,
                ["ip", "route", "add", str(host), "via", ip_nosub, "dev", veth_source],
            )
        if allow_host_access:
            nsexec.exec_in(
                self.name,
                ["ip", "route", "add", ip_nosub, "via", ip_nosub, "dev", veth_source],
            )

        log.info("IP address of namespace as seen from host: %s", veth_source_ip_nosub)
        log.info("IP address of host as seen from namespace: %s", ip_nosub)
        self.veth_pair_ips = VethPairIPs(
            ipaddress.ip_address(ip_nosub), ipaddress.ip_address(veth_source_ip_nosub)
        )

    def dns_config(
        self,
        servers: Sequence[IpAddress],
        suffixes: Sequence[str],
        hosts_entries: Optional[Sequence[str]] = None,
        allow_host_access: bool = False,
    ) -> None:
        """Write the namespace's resolver configuration."""
        if self.veth_pair_ips is None:
            raise RuntimeError("Failed to get veth pair IPs")
        self.dns = write_dns_config(
            self.name,
            servers,
            suffixes,
            hosts_entries,
            self.veth_pair_ips.host_ip,
            allow_host_access,
            self.etc_root,
        )

    def add_host_masquerade(
        self, target_subnet: int, interface: NetworkInterface, firewall: Firewall
    ) -> None:
        _check_subnet(target_subnet)
        self.host_masquerade = add_masquerade_rule(
            f"10.200.{target_subnet}.0/24", interface, firewall
        )

    def add_firewall_exception(
        self,
        host_interface: NetworkInterface,
        ns_interface: NetworkInterface,
        firewall: Firewall,
    ) -> None:
        self.firewall_exception = add_firewall_exception(
            host_interface, ns_interface, firewall
        )

    def to_dict(self) -> dict:
        """Serialisable description of the namespace."""
        return {
            "name": self.name,
            "provider": self.provider,
            "protocol": self.protocol.value,
            "firewall": self.firewall.value,
            "predown": self.predown,
            "predown_user": self.predown_user,
            "predown_group": self.predown_group,
            "config_file": str(self.config_file) if self.config_file is not None else None,
            "etc_root": str(self.etc_root),
            "veth_pair": (
                {"source": self.veth_pair.source, "dest": self.veth_pair.dest}
                if self.veth_pair is not None
                else None
            ),
            "veth_pair_ips": self.veth_pair_ips.to_dict() if self.veth_pair_ips else None,
            "dns": (
                {"ns_name": self.dns.ns_name, "etc_root": str(self.dns.etc_root)}
                if self.dns is not None
                else None
            ),
            "host_masquerade": (
                {
                    "ip_mask": self.host_masquerade.ip_mask,
                    "interface": self.host_masquerade.interface.name,
                    "firewall": self.host_masquerade.firewall.value,
                }
                if self.host_masquerade is not None
                else None
            ),
            "firewall_exception": (
                {
                    "host_interface": self.firewall_exception.host_interface.name,
                    "ns_interface": self.firewall_exception.ns_interface.name,
                    "firewall": self.firewall_exception.firewall.value,
                }
                if self.firewall_exception is not None
                else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NetworkNamespace":
        ns = cls(
            name=data["name"],
            provider=data["provider"],
            protocol=Protocol(data["protocol"]),
            firewall=Firewall(data["firewall"]),
            predown=data.get("predown"),
            predown_user=data.get("predown_user"),
            predown_group=data.get("predown_group"),
            etc_root=Path(data.get("etc_root", "/etc")),
        )
        if data.get("config_file") is not None:
            ns.config_file = Path(data["config_file"])
        if data.get("veth_pair"):
            ns.veth_pair = _VethNames(data["veth_pair"]["source"], data["veth_pair"]["dest"])
        if data.get("veth_pair_ips"):
            ns.veth_pair_ips = VethPairIPs.from_dict(data["veth_pair_ips"])
        if data.get("dns"):
            ns.dns = DnsConfig(data["dns"]["ns_name"], Path(data["dns"]["etc_root"]))
        if data.get("host_masquerade"):
            entry = data["host_masquerade"]
            ns.host_masquerade = HostMasquerade(
                entry["ip_mask"], NetworkInterface(entry["interface"]), Firewall(entry["firewall"])
            )
        if data.get("firewall_exception"):
            entry = data["firewall_exception"]
            ns.firewall_exception = FirewallException(
                NetworkInterface(entry["host_interface"]),
                NetworkInterface(entry["ns_interface"]),
                Firewall(entry["firewall"]),
            )
        return ns

    def write_lockfile(self, command: str) -> "NetworkNamespace":
        """Record that this process uses the namespace."""
        lock_dir = _lock_dir(self.name)
        lock_dir.mkdir(parents=True, exist_ok=True)
        path = lock_dir / str(os.getpid())
        log.debug("Writing lockfile: %s", path)
        lock = Lockfile(ns=self, start=int(time.time()), command=command)
        path.write_text(json.dumps(lock.to_dict()), encoding="utf-8")
        log.debug("Lockfile written: %s", path)
        return self

    def _run_predown(self) -> None:
        try:
            command = shlex.split(self.predown)
        except ValueError as exc:
            log.error(
                "Failed to parse predown command: %s - skipped predown execution, error: %s",
                self.predown,
                exc,
            )
            return
        if not command:
            return
        env = dict(os.environ, NSVPN_NS=self.name)
        if self.veth_pair_ips is not None:
            env["NSVPN_NS_IP"] = str(self.veth_pair_ips.namespace_ip)
            env["NSVPN_HOST_IP"] = str(self.veth_pair_ips.host_ip)
        sudo_args: list[str] = []
        if self.predown_user is not None:
            sudo_args += ["--user", self.predown_user]
        if self.predown_group is not None:
            sudo_args += ["--group", self.predown_group]
        if sudo_args:
            command = ["sudo", "--preserve-env", *sudo_args, *command]
        try:
            subprocess.Popen(command, env=env)
        except OSError as exc:
            log.error("Failed to run predown command %s: %s", self.predown, exc)

    def close(self) -> None:
        """Release this process's lock; tear down if no other user remains."""
        if self._closed:
            return
        self._closed = True
        own_lock = _lock_dir(self.name) / str(os.getpid())
        if own_lock.exists():
            try:
                own_lock.unlink()
            except OSError as exc:
                log.warning("Failed to remove lockfile: %s, %s", own_lock, exc)

        lock_dir = _lock_dir(self.name)
        try:
            remaining = sorted(lock_dir.iterdir()) if lock_dir.exists() else []
            unused = not remaining
        except OSError:
            remaining, unused = [], False

        if not unused:
            log.debug("Skipping destructors since other instance using this namespace!")
            log.debug("Existing lockfiles using this namespace: %s", remaining)
            return

        if lock_dir.exists():
            try:
                lock_dir.rmdir()
            except OSError as exc:
                log.warning("Could not remove locks directory: %s, %s", lock_dir, exc)
        log.info("Shutting down namespace - as there are no processes left running inside")
        if self.predown:
            self._run_predown()

        for resource in (self.veth_pair, self.dns, self.host_masquerade, self.firewall_exception):
            closer = getattr(resource, "close", None)
            if closer is not None:
                closer()
        self.veth_pair = None
        self.dns = None
        self.host_masquerade = None
        self.firewall_exception = None
        _sudo(
            ["ip", "netns", "delete", self.name],
            f"Failed to delete network namespace: {self.name}",
        )
        if self.openfortivpn is not None and hasattr(self.openfortivpn, "close"):
            self.openfortivpn.close()
        self.openfortivpn = None

    def __enter__(self) -> "NetworkNamespace":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def create_namespace(
    name: str,
    provider: str,
    protocol: Protocol,
    firewall: Firewall,
    predown: Optional[str] = None,
    predown_user: Optional[str] = None,
    predown_group: Optional[str] = None,
) -> NetworkNamespace:
    """Create a new network namespace on the host."""
    _sudo(["ip", "netns", "add", name], f"Failed to create network namespace: {name}")
    log.info("Created new network namespace: %s", name)
    return NetworkNamespace(
        name=name,
        provider=provider,
        protocol=protocol,
        firewall=firewall,
        predown=predown,
        predown_user=predown_user,
        predown_group=predown_group,
    )


@dataclass
class Lockfile:
    """Contents of a lockfile: the namespace, its start time and command."""

    ns: NetworkNamespace
    start: int
    command: str

    def to_dict(self) -> dict:
        return {"ns": self.ns.to_dict(), "start": self.start, "command": self.command}

    @classmethod
    def from_dict(cls, data: dict) -> "Lockfile":
        return cls(
            ns=NetworkNamespace.from_dict(data["ns"]),
            start=int(data["start"]),
            command=data["command"],
        )