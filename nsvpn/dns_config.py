"""Per-namespace resolver configuration under /etc/netns."""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

log = logging.getLogger(__name__)

HOSTS_LINE = re.compile(r"^hosts:.*$")
HOSTS_REPLACEMENT = "hosts: files mymachines myhostname dns"
HOST_ALIAS = "nsvpn.host"

FILE_MODE = 0o644
DIR_MODE = 0o755


def rewrite_nsswitch_line(line: str) -> str:
    """Replace a 'hosts:' line so lookups use files, then DNS."""
    return HOSTS_LINE.sub(HOSTS_REPLACEMENT, line, count=1)


def _create(path: Path, lines: Iterable[str]) -> None:
    try:
        with path.open("w", encoding="utf-8") as handle:
            for line in lines:
                handle.write(f"{line}\n")
        path.chmod(FILE_MODE)
    except OSError as exc:
        raise OSError(f"Failed to write {path}: {exc}") from exc


@dataclass
class DnsConfig:
    """Resolver files of one namespace; close() removes them."""

    ns_name: str
    etc_root: Path = Path("/etc")
    _closed: bool = field(default=False, init=False, repr=False, compare=False)

    @property
    def directory(self) -> Path:
        return Path(self.etc_root) / "netns" / self.ns_name

    def close(self) -> None:
        """Delete the namespace's configuration directory."""
        if self._closed:
            return
        self._closed = True
        try:
            shutil.rmtree(self.directory)
        except OSError as exc:
            log.warning(
                "Failed to delete network namespace directory: %s: %s",
                self.directory,
                exc,
            )

    def __enter__(self) -> "DnsConfig":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def write_dns_config(
    ns_name: str,
    servers: Sequence[object],
    suffixes: Sequence[str],
    hosts_entries: Optional[Sequence[str]],
    host_ip: object,
    allow_host_access: bool,
    etc_root: Union[str, Path] = "/etc",
) -> DnsConfig:
    """Write resolv.conf, hosts and nsswitch.conf for the namespace."""
    etc_root = Path(etc_root)
    config = DnsConfig(ns_name, etc_root)
    directory = config.directory
    try:
        directory.mkdir(parents=True, exist_ok=True)
        directory.chmod(DIR_MODE)
    except OSError as exc:
        raise OSError(f"Failed to create directory: {directory}: {exc}") from exc

    log.debug(
        "Setting namespace %s DNS server to %s",
        ns_name,
        ", ".join(str(server) for server in servers),
    )
    resolv_lines = []
    suffix = " ".join(suffixes)
    if suffix:
        resolv_lines.append(f"search {suffix}")
    resolv_lines.extend(f"nameserver {server}" for server in servers)
    _create(directory / "resolv.conf", resolv_lines)

    entries = []
    if allow_host_access:
        log.debug(
            "Host access allowed so adding host IP %s to hosts file as %s",
            host_ip,
            HOST_ALIAS,
        )
        entries.append(f"{host_ip} {HOST_ALIAS}")
    if hosts_entries:
        entries.extend(hosts_entries)
    if entries:
        _create(directory / "hosts", entries)

    nsswitch_src = etc_root / "nsswitch.conf"
    if nsswitch_src.exists():
        source_lines = nsswitch_src.read_text(encoding="utf-8").splitlines()
        _create(
            directory / "nsswitch.conf",
            (rewrite_nsswitch_line(line) for line in source_lines),
        )

    return config