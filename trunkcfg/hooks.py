"""Running the build hooks configured for a pipeline stage."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from trunkcfg.common import TrunkError
from trunkcfg.runtime import RtcBuild

__all__ = ["HookHandle", "hook_environment", "spawn_hooks", "wait_hooks"]

log = logging.getLogger(__name__)


@dataclass
class HookHandle:
    """A running hook command, or the error that kept it from starting."""

    command: str
    process: subprocess.Popen[bytes] | None = None
    spawn_error: OSError | None = None

    def wait(self) -> None:
        """Wait for the hook to finish, raising if it failed to start or exited badly."""
        if self.process is None:
            raise TrunkError(
                f"error spawning hook call for {self.command}"
            ) from self.spawn_error
        try:
            returncode = self.process.wait()
        except OSError as err:
            raise TrunkError(f"error calling hook to {self.command}") from err
        if returncode != 0:
            raise TrunkError(f"hook call to {self.command} returned a bad status")
        log.info("finished hook %s", self.command)


def hook_environment(cfg: RtcBuild) -> dict[str, str]:
    """The environment variables handed to every hook command."""
    return {
        "TRUNK_PROFILE": "release" if cfg.release else "debug",
        "TRUNK_HTML_FILE": os.fspath(cfg.target),
        "TRUNK_SOURCE_DIR": os.fspath(cfg.target_parent),
        "TRUNK_STAGING_DIR": os.fspath(cfg.staging_dist),
        "TRUNK_DIST_DIR": os.fspath(cfg.final_dist),
        "TRUNK_PUBLIC_URL": cfg.public_url,
    }


def spawn_hooks(cfg: RtcBuild, stage: Any) -> list[HookHandle]:
    """Start every hook configured for ``stage`` and return their handles."""
    env = {**os.environ, **hook_environment(cfg)}
    handles: list[HookHandle] = []
    for hook in cfg.hooks:
        if hook.stage != stage:
            continue
        log.info("spawning hook %s (stage %s, arguments %r)", hook.command, stage, hook.command_arguments)
        try:
            process = subprocess.Popen([hook.command, *hook.command_arguments], env=env)
        except OSError as err:
            handles.append(HookHandle(command=hook.command, spawn_error=err))
        else:
            handles.append(HookHandle(command=hook.command, process=process))
    return handles


def wait_hooks(handles: Iterable[HookHandle]) -> None:
    """Wait for all the given hooks, raising on the first one that failed."""
    for handle in handles:
        handle.wait()