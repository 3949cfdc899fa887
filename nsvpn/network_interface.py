"""Host network interfaces."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkInterface:
    name: str

    @classmethod
    def from_str(cls, text: str) -> "NetworkInterface":
        """Create an interface by name, warning if it does not appear active."""
        try:
            active = text in get_active_interfaces()
        except (RuntimeError, ValueError):
            active = False
        if not active:
            log.warning(
                "%s may not be an active network interface, using anyway since manually set",
                text,
            )
        return cls(text)


def parse_active_interfaces(output: str) -> list[str]:
    """Extract the names of interfaces in state UP from `ip addr` output."""
    names = []
    for line in output.split("\n"):
        if "state UP" not in line:
            continue
        fields = line.split()
        if len(fields) > 1:
            names.append(fields[1][:-1])
    return names


def get_active_interfaces() -> list[str]:
    """Return the names of the host's active interfaces."""
    log.debug("ip addr")
    try:
        result = subprocess.run(["ip", "addr"], capture_output=True, check=False)
    except OSError as exc:
        raise RuntimeError("Failed to run command: ip addr") from exc
    names = parse_active_interfaces(result.stdout.decode("utf-8"))
    if not names:
        raise RuntimeError(
            "Failed to get active network interface - "
            "consider using -i argument to override network interface"
        )
    return names