"""Launching user applications inside a network namespace."""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import psutil

from nsvpn.nsexec import exec_no_block

log = logging.getLogger(__name__)

SHARED_PROCESS_APPS = (
    "google-chrome-stable",
    "google-chrome-beta",
    "google-chrome",
    "chromium",
    "firefox",
    "firefox-developer-edition",
)


def shared_process_conflicts(app_args: Iterable[str], running: Iterable[str]) -> list[str]:
    """Return shared-process browsers that are both requested and already running."""
    requested = set(app_args)
    active = set(running)
    return [app for app in SHARED_PROCESS_APPS if app in requested and app in active]


def _running_process_names() -> set[str]:
    names = set()
    for process in psutil.process_iter(["name"]):
        name = process.info.get("name")
        if name:
            names.add(name)
    return names


class ApplicationWrapper:
    """An application started inside a namespace."""

    def __init__(
        self,
        netns: Any,
        application: str,
        user: Optional[str] = None,
        group: Optional[str] = None,
        working_directory: Optional[Union[str, Path]] = None,
        port_forwarding: Any = None,
    ) -> None:
        app_args = shlex.split(application)
        if not app_args:
            raise ValueError("Empty application command")
        try:
            running = _running_process_names()
        except psutil.Error:
            running = set()
        for app in shared_process_conflicts(app_args, running):
            log.warning(
                "%s is already running. You must force it to use a separate "
                "profile in order to launch a new process!",
                app,
            )
        self.handle: subprocess.Popen = exec_no_block(
            netns.name,
            app_args,
            user=user,
            group=group,
            set_dir=working_directory,
        )
        self.port_forwarding = port_forwarding

    def wait_with_output(self) -> subprocess.CompletedProcess:
        """Wait for the application to exit and collect what it produced."""
        stdout, stderr = self.handle.communicate()
        return subprocess.CompletedProcess(
            self.handle.args, self.handle.returncode, stdout, stderr
        )