"""Generating OpenVPN configuration files for Mullvad."""

from __future__ import annotations

import ipaddress
import logging
import random
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence, Union

import requests

from nsvpn.providers import Mullvad
from nsvpn.ui import BoolChoice, UiClient
from nsvpn.vpn import OpenVpnProtocol

log = logging.getLogger(__name__)

RELAYS_URL = "https://api.mullvad.net/www/relays/openvpn/"
BRIDGES_URL = "https://api.mullvad.net/www/relays/bridge/"
DEFAULT_UDP_PORTS = (1300, 1301, 1302, 1194, 1195, 1196, 1197)
MAX_REMOTES = 64
AUTH_FILE_NAME = "mullvad_userpass.txt"
CA_FILE_NAME = "mullvad_ca.crt"


class ConfigType(Enum):
    """Protocol and port combination for generated configurations."""

    DefaultUdp = "Default (UDP)"
    Udp53 = "UDP (Port 53)"
    Tcp80 = "TCP (Port 80)"
    Tcp443 = "TCP (Port 443)"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def default(cls) -> "ConfigType":
        return cls.DefaultUdp

    @classmethod
    def index_to_variant(cls, index: int) -> "ConfigType":
        members = list(cls)
        if not 0 <= index < len(members):
            raise ValueError(f"Invalid index: {index}")
        return members[index]

    def protocol(self) -> OpenVpnProtocol:
        if self in (ConfigType.DefaultUdp, ConfigType.Udp53):
            return OpenVpnProtocol.UDP
        return OpenVpnProtocol.TCP

    def generate_port(self) -> int:
        ports = {ConfigType.Udp53: 53, ConfigType.Tcp80: 80, ConfigType.Tcp443: 443}
        if self is ConfigType.DefaultUdp:
            return random.choice(DEFAULT_UDP_PORTS)
        return ports[self]

    def prompt(self) -> str:
        return "Please choose your OpenVPN connection protocol and port"

    def all_names(self) -> list[str]:
        return [str(member) for member in type(self)]

    def all_descriptions(self) -> Optional[list[str]]:
        """Descriptions of every member, or None unless all have one."""
        descriptions = [member.description() for member in type(self)]
        if any(text is None for text in descriptions):
            return None
        return descriptions

    def description(self) -> Optional[str]:
        """User-facing description of this member, if it has one."""
        return _CONFIG_TYPE_DESCRIPTIONS.get(self)


# The configuration types are named clearly enough to need no descriptions.
_CONFIG_TYPE_DESCRIPTIONS: dict[ConfigType, str] = {}


@dataclass(frozen=True)
class OpenVpnRelay:
    """An OpenVPN or bridge relay as listed by the relay API."""

    hostname: str
    country_code: str
    country_name: str
    city_code: str
    city_name: str
    active: bool
    owned: bool
    provider: str
    ipv4_addr_in: ipaddress.IPv4Address

    @classmethod
    def from_dict(cls, data: dict) -> "OpenVpnRelay":
        return cls(
            hostname=data["hostname"],
            country_code=data["country_code"],
            country_name=data["country_name"],
            city_code=data["city_code"],
            city_name=data["city_name"],
            active=bool(data["active"]),
            owned=bool(data["owned"]),
            provider=data["provider"],
            ipv4_addr_in=ipaddress.IPv4Address(data["ipv4_addr_in"]),
        )


def default_openvpn_settings() -> list[str]:
    """Settings shared by every generated configuration file."""
    return [
        "client",
        "dev tun",
        "resolv-retry infinite",
        "nobind",
        "persist-key",
        "persist-tun",
        "verb 3",
        "remote-cert-tls server",
        "ping 10",
        "ping-restart 60",
        "sndbuf 524288",
        "rcvbuf 524288",
        "cipher AES-256-CBC",
        "tls-cipher TLS-DHE-RSA-WITH-AES-256-GCM-SHA384:TLS-DHE-RSA-WITH-AES-256-CBC-SHA",
        f"auth-user-pass {AUTH_FILE_NAME}",
        f"ca {CA_FILE_NAME}",
        "tun-ipv6",
        "script-security 2",
    ]


def group_remotes(
    relays: Iterable[OpenVpnRelay], port: int, use_ips: bool
) -> dict[str, list[str]]:
    """Group remote lines of active relays by configuration file name."""
    groups: dict[str, list[str]] = {}
    for relay in relays:
        if not relay.active:
            continue
        file_name = f"{relay.country_name.lower().replace(' ', '_')}-{relay.country_code}.ovpn"
        if use_ips:
            remote = f"remote {relay.ipv4_addr_in} {port} # {relay.hostname}"
        else:
            remote = f"remote {relay.hostname}.relays.mullvad.net {port}"
        groups.setdefault(file_name, []).append(remote)
    return groups


def bridge_routes(bridges: Iterable[OpenVpnRelay]) -> list[str]:
    """Route lines sending traffic to active bridges via the normal gateway."""
    return [
        f"route {bridge.ipv4_addr_in} 255.255.255.255 net_gateway # {bridge.hostname}"
        for bridge in bridges
        if bridge.active
    ]


def render_config(
    settings: Sequence[str], remotes: Sequence[str], bridges: Sequence[str]
) -> str:
    """Render one configuration file; at most 64 remotes are kept."""
    parts = ["\n".join(settings) + "\n", "\n".join(remotes[:MAX_REMOTES]) + "\n"]
    if len(remotes) > 1:
        parts.append("remote-random\n")
    if bridges:
        parts.append("\n".join(bridges) + "\n")
    return "".join(parts)


def _delete_all_files_in_dir(directory: Path) -> None:
    for entry in directory.iterdir():
        if entry.is_file() or entry.is_symlink():
            entry.unlink()


class MullvadOpenVpn(Mullvad):
    """Mullvad's OpenVPN configuration and credentials."""

    def __init__(
        self,
        config_root: Optional[Union[str, Path]] = None,
        session: Any = None,
        ca_cert: Optional[str] = None,
    ) -> None:
        super().__init__(config_root)
        self.session = session if session is not None else requests.Session()
        self.ca_cert = ca_cert

    def _fetch_relays(self, url: str) -> list[OpenVpnRelay]:
        response = self.session.get(url, timeout=30)
        response.raise_for_status()
        return [OpenVpnRelay.from_dict(item) for item in response.json()]

    def provider_dns(self) -> list[ipaddress.IPv4Address]:
        return super().provider_dns()

    def prompt_for_auth(self, uiclient: UiClient) -> tuple[str, str]:
        """The account number is the username; the password is fixed."""
        username = self.request_mullvad_username(uiclient)
        return username, "m"

    def auth_file_path(self) -> Path:
        return self.openvpn_dir() / AUTH_FILE_NAME

    def create_openvpn_config(self, uiclient: UiClient) -> None:
        """Fetch the relay list and write one configuration file per country."""
        openvpn_dir = self.openvpn_dir()
        openvpn_dir.mkdir(parents=True, exist_ok=True)
        _delete_all_files_in_dir(openvpn_dir)

        relays = self._fetch_relays(RELAYS_URL)

        config_choice = ConfigType.index_to_variant(
            uiclient.get_configuration_choice(ConfigType.default())
        )
        port = config_choice.generate_port()

        use_ips = uiclient.get_bool_choice(BoolChoice(
            prompt=(
                "Use IP addresses instead of hostnames? (may be resistant to DNS "
                "blocking, but need to be synced more frequently)"
            ),
            default=False,
        ))
        use_bridges = uiclient.get_bool_choice(BoolChoice(
            prompt=(
                "Connect via a bridge? (route over two separate servers, "
                "requires connecting on TCP port 443)"
            ),
            default=False,
        ))

        settings = default_openvpn_settings()
        if use_bridges:
            if config_choice is not ConfigType.Tcp443:
                log.warning("Overriding chosen protocol and port to TCP 443 due to use of bridge")
                config_choice = ConfigType.Tcp443
            settings.append("socks-proxy 127.0.0.1 1080")

        if config_choice.protocol() is OpenVpnProtocol.UDP:
            settings += ["proto udp", "fast-io"]
        else:
            settings.append("proto tcp")

        groups = group_remotes(relays, port, use_ips)
        bridges = bridge_routes(self._fetch_relays(BRIDGES_URL)) if use_bridges else []

        for file_name, remotes in groups.items():
            random.shuffle(remotes)
            (openvpn_dir / file_name).write_text(
                render_config(settings, remotes, bridges), encoding="utf-8"
            )

        ca_path = openvpn_dir / CA_FILE_NAME
        if self.ca_cert is not None:
            ca_path.write_text(self.ca_cert, encoding="utf-8")
        else:
            log.warning("No CA certificate supplied; place it at %s", ca_path)

        user, secret = self.prompt_for_auth(uiclient)
        self.auth_file_path().write_text(f"{user}\n{secret}", encoding="utf-8")