"""VPN protocol definitions and credential file handling."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)


class OpenVpnProtocol(Enum):
    """Transport protocol for an OpenVPN connection."""

    UDP = "udp"
    TCP = "tcp"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def index_to_variant(cls, index: int) -> "OpenVpnProtocol":
        members = list(cls)
        if not 0 <= index < len(members):
            raise ValueError(f"Invalid index: {index}")
        return members[index]

    @classmethod
    def parse(cls, text: str) -> "OpenVpnProtocol":
        aliases = {"udp": cls.UDP, "tcp-client": cls.TCP, "tcp": cls.TCP}
        try:
            return aliases[text]
        except KeyError:
            raise ValueError(f"Unknown VPN protocol: {text}") from None

    @classmethod
    def default(cls) -> "OpenVpnProtocol":
        return cls.UDP

    def prompt(self) -> str:
        return "Which OpenVPN connection protocol do you wish to use"

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
        return _OPENVPN_PROTOCOL_DESCRIPTIONS.get(self)


# No protocol carries a description of its own.
_OPENVPN_PROTOCOL_DESCRIPTIONS: dict[OpenVpnProtocol, str] = {}


class Protocol(Enum):
    """Kind of VPN connection run inside a namespace."""

    OpenVpn = "OpenVpn"
    Wireguard = "Wireguard"
    OpenConnect = "OpenConnect"
    OpenFortiVpn = "OpenFortiVpn"
    Warp = "Warp"
    NONE = "None"

    def __str__(self) -> str:
        return self.value


@dataclass
class VpnServer:
    name: str
    alias: str
    host: str
    port: Optional[int] = None
    protocol: Optional[OpenVpnProtocol] = None


def verify_auth(provider, uiclient) -> Optional[Path]:
    """Make sure the provider's OpenVPN credentials file exists.

    Returns the file's path, or None if the provider uses no such file.
    If the file cannot be opened the user is prompted and it is written.
    """
    auth_file = provider.auth_file_path()
    if auth_file is None:
        return None
    auth_file = Path(auth_file)
    try:
        handle = auth_file.open(encoding="utf-8")
    except OSError:
        log.debug("No auth file: %s - prompting user", auth_file)
        user, password = provider.prompt_for_auth(uiclient)
        Path(provider.auth_file_path()).write_text(
            f"{user}\n{password}", encoding="utf-8"
        )
        log.info("Credentials written to: %s", auth_file)
        return auth_file

    with handle:
        log.debug("Read auth file: %s", auth_file)
        lines = handle.read().splitlines()
    if not lines:
        raise ValueError("No username")
    if len(lines) < 2:
        raise ValueError("No password")
    return auth_file