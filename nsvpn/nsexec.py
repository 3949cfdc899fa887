"""Running commands on the host and inside network namespaces."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Optional, Sequence, Union

log = logging.getLogger(__name__)

LOCKS_SUBDIR = Path("nsvpn", "locks")


def config_dir() -> Path:
    """Return the user's configuration directory."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def lock_namespaces(base_dir: Optional[Union[str, Path]] = None) -> dict[str, list[str]]:
    """Map each namespace holding lockfiles to the names of those lockfiles."""
    base = Path(base_dir) if base_dir is not None else config_dir()
    root = base / LOCKS_SUBDIR
    if not root.is_dir():
        return {}
    namespaces: dict[str, list[str]] = {}
    for ns_dir in sorted(root.iterdir()):
        if not ns_dir.is_dir():
            continue
        locks = sorted(entry.name for entry in ns_dir.iterdir() if entry.is_file())
        if locks:
            namespaces[ns_dir.name] = locks
    return namespaces


def sudo_command(command: Sequence[str]) -> subprocess.CompletedProcess:
    """Run a command as root, raising CalledProcessError on failure."""
    args = list(command)
    if os.geteuid() != 0:
        args = ["sudo", *args]
    log.debug("%s", " ".join(args))
    return subprocess.run(args, check=True)


def build_exec_args(
    netns_name: str,
    command: Sequence[str],
    user: Optional[str] = None,
    group: Optional[str] = None,
) -> list[str]:
    """Build the argument list that runs command inside a namespace."""
    args = ["ip", "netns", "exec", netns_name]
    sudo_args: list[str] = []
    if user is not None:
        sudo_args += ["--user", user]
    if group is not None:
        sudo_args += ["--group", group]
    if sudo_args:
        args += ["sudo", "--preserve-env", *sudo_args]
    args += list(command)
    return args


def exec_no_block(
    netns_name: str,
    command: Sequence[str],
    user: Optional[str] = None,
    group: Optional[str] = None,
    silent: bool = False,
    capture_output: bool = False,
    capture_input: bool = False,
    set_dir: Optional[Union[str, Path]] = None,
) -> subprocess.Popen:
    """Start command inside the namespace and return the running process."""
    args = build_exec_args(netns_name, command, user, group)
    stdout = stderr = stdin = None
    if silent:
        stdout = stderr = subprocess.DEVNULL
    if capture_output:
        stdout = stderr = subprocess.PIPE
    if capture_input:
        stdin = subprocess.PIPE
    log.debug("%s", " ".join(args))
    return subprocess.Popen(args, cwd=set_dir, stdout=stdout, stderr=stderr, stdin=stdin)


def exec_in(netns_name: str, command: Sequence[str]) -> int:
    """Run command inside the namespace, wait, and return its exit code."""
    return exec_no_block(netns_name, command).wait()


def exec_with_output(netns_name: str, command: Sequence[str]) -> subprocess.CompletedProcess:
    """Run command inside the namespace and collect its output."""
    process = exec_no_block(netns_name, command, capture_output=True)
    stdout, stderr = process.communicate()
    return subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)