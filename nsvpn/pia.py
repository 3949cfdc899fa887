"""Private Internet Access OpenVPN configuration sets and hostname lookup."""

from __future__ import annotations

import ipaddress
import json
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

_REMOTE_LINE = re.compile(r"\n *remote +([^ ]+) +\d+ *\n")

_BASE_URL = "https://www.privateinternetaccess.com/openvpn/"


class PiaConfigType(Enum):
    """Set of OpenVPN configuration files offered for download."""

    DefaultConf = "Default"
    Ip = "IP"
    Strong = "Strong"
    Tcp = "TCP"
    StrongTcp = "Strong TCP"
    LegacyIp = "Legacy IP"
    LegacyTcpIp = "Legacy TCP IP"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def default(cls) -> "PiaConfigType":
        return cls.DefaultConf

    @classmethod
    def index_to_variant(cls, index: int) -> "PiaConfigType":
        members = list(cls)
        if not 0 <= index < len(members):
            raise ValueError(f"Invalid index: {index}")
        return members[index]

    def url(self) -> str:
        """Download address of the zip archive holding this set."""
        archives = {
            PiaConfigType.DefaultConf: "openvpn.zip",
            PiaConfigType.Ip: "openvpn-ip.zip",
            PiaConfigType.Strong: "openvpn-strong.zip",
            PiaConfigType.Tcp: "openvpn-tcp.zip",
            PiaConfigType.StrongTcp: "openvpn-strong-tcp.zip",
            PiaConfigType.LegacyIp: "openvpn-ip-lport.zip",
            PiaConfigType.LegacyTcpIp: "openvpn-ip-tcp.zip",
        }
        return _BASE_URL + archives[self]

    def prompt(self) -> str:
        return "Please choose the set of OpenVPN configuration files you wish to install"

    def all_names(self) -> list[str]:
        return [str(member) for member in type(self)]

    def all_descriptions(self) -> Optional[list[str]]:
        return [member.description() for member in type(self)]

    def description(self) -> Optional[str]:
        descriptions = {
            PiaConfigType.DefaultConf: (
                "These files connect over UDP port 1198 with AES-128-CBC+SHA1, "
                "using the server name to connect."
            ),
            PiaConfigType.Ip: (
                "These files connect over UDP port 1198 with AES-128-CBC+SHA1, "
                "and connect via an IP address instead of the server name."
            ),
            PiaConfigType.Strong: (
                "These files connect over UDP port 1197 with AES-256-CBC+SHA256, "
                "using the server name to connect."
            ),
            PiaConfigType.Tcp: (
                "These files connect over TCP port 502 with AES-128-CBC+SHA1, "
                "using the server name to connect."
            ),
            PiaConfigType.StrongTcp: (
                "These files connect over TCP port 501 with AES-256-CBC+SHA256, "
                "using the server name to connect."
            ),
            PiaConfigType.LegacyIp: (
                "These files connect over UDP port 8080 with BF-CBC+SHA1 and "
                "connect via an IP address instead of the server name."
            ),
            PiaConfigType.LegacyTcpIp: (
                "These files connect over TCP port 443 with BF-CBC+SHA1 and "
                "connect via an IP address instead of the server name."
            ),
        }
        return descriptions[self]


@dataclass
class PiaConfig:
    """Mapping from configuration file name to the server hostname it uses."""

    hostname_lookup: dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "PiaConfig":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        lookup = data["hostname_lookup"]
        if not isinstance(lookup, dict):
            raise ValueError("hostname_lookup must be a mapping")
        return cls({str(key): str(value) for key, value in lookup.items()})

    def save(self, path: Union[str, Path]) -> None:
        Path(path).write_text(
            json.dumps({"hostname_lookup": self.hostname_lookup}), encoding="utf-8"
        )


def extract_hostname(text: str) -> Optional[str]:
    """Return the host of the first 'remote <host> <port>' line, if any."""
    match = _REMOTE_LINE.search(text)
    return match.group(1) if match else None


def hostname_for_openvpn_conf(
    config_path: Union[str, Path], config_file: str
) -> str:
    """Look up the hostname recorded for an OpenVPN configuration file."""
    config = PiaConfig.load(config_path)
    try:
        return config.hostname_lookup[config_file]
    except KeyError:
        raise KeyError(
            f"Could not find matching hostname for openvpn conf {config_file}"
        ) from None


def pia_provider_dns() -> list[ipaddress.IPv4Address]:
    """DNS servers run by the provider."""
    return [
        ipaddress.IPv4Address("209.222.18.222"),
        ipaddress.IPv4Address("209.222.18.218"),
    ]