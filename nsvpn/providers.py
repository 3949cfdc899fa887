"""VPN providers and the Mullvad account handling."""

from __future__ import annotations

import ipaddress
import logging
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from nsvpn import nsexec
from nsvpn.ui import Input, UiClient
from nsvpn.vpn import Protocol

log = logging.getLogger(__name__)

MULLVAD_ACCOUNT_LENGTH = 16


class Provider(ABC):
    """A VPN provider whose configuration lives under the user's config directory."""

    def __init__(self, config_root: Optional[Union[str, Path]] = None) -> None:
        self.config_root = Path(config_root) if config_root is not None else None

    @abstractmethod
    def alias(self) -> str:
        """Short name used for directories and on the command line."""

    @abstractmethod
    def alias_2char(self) -> str:
        """Two-character alias."""

    @abstractmethod
    def default_protocol(self) -> Protocol:
        """Protocol used when none is chosen."""

    def provider_dir(self) -> Path:
        root = self.config_root if self.config_root is not None else nsexec.config_dir()
        return root / "nsvpn" / self.alias()

    def openvpn_dir(self) -> Path:
        return self.provider_dir() / "openvpn"


@dataclass
class Device:
    """A device registered with a Mullvad account."""

    name: str
    pubkey: str
    created: str
    ipv4_address: str
    ipv6_address: str

    def __str__(self) -> str:
        return f"{self.name}: {self.pubkey} (created: {self.created})"


def clean_mullvad_account(text: str) -> str:
    """Keep only the ASCII digits of an account number."""
    return "".join(char for char in text if char in string.digits)


def validate_mullvad_account(text: str) -> None:
    """Raise ValueError unless the text holds a 16-digit account number."""
    if len(clean_mullvad_account(text)) != MULLVAD_ACCOUNT_LENGTH:
        raise ValueError("Mullvad account number should be 16 digits!")


class Mullvad(Provider):
    def alias(self) -> str:
        return "mv"

    def alias_2char(self) -> str:
        return "mv"

    def default_protocol(self) -> Protocol:
        return Protocol.Wireguard

    def request_mullvad_username(self, uiclient: UiClient) -> str:
        """Ask the user for their account number and return its digits."""
        answer = uiclient.get_input(
            Input(prompt="Mullvad account number", validator=validate_mullvad_account)
        )
        username = clean_mullvad_account(answer)
        if len(username) != MULLVAD_ACCOUNT_LENGTH:
            raise ValueError(
                f"Mullvad account number should be 16 digits!, parsed: {username}"
            )
        return username

    def password(self) -> str:
        """Shadowsocks password published in the provider's documentation."""
        return "mullvad"

    def encrypt_method(self) -> str:
        """Shadowsocks cipher."""
        return "aes-256-gcm"

    def provider_dns(self) -> list[ipaddress.IPv4Address]:
        return [ipaddress.IPv4Address("193.138.218.74")]


class NordVPN(Provider):
    def alias(self) -> str:
        return "nordvpn"

    def alias_2char(self) -> str:
        return "nd"

    def default_protocol(self) -> Protocol:
        return Protocol.OpenVpn


class ProtonVPN(Provider):
    def alias(self) -> str:
        return "proton"

    def alias_2char(self) -> str:
        return "pr"

    def default_protocol(self) -> Protocol:
        return Protocol.OpenVpn


class Warp(Provider):
    def alias(self) -> str:
        return "warp"

    def alias_2char(self) -> str:
        return "wp"

    def default_protocol(self) -> Protocol:
        return Protocol.Warp