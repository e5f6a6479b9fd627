"""Common functionality and filesystem helpers."""

from __future__ import annotations

import functools
import logging
import os
import shutil
import stat
import subprocess
from collections.abc import Iterable
from pathlib import Path

__all__ = [
    "BUILDING",
    "ERROR",
    "SERVER",
    "SUCCESS",
    "TrunkError",
    "copy_dir_recursive",
    "is_executable",
    "parse_public_url",
    "path_exists",
    "remove_dir_all",
    "run_command",
    "strip_prefix",
]

log = logging.getLogger(__name__)

BUILDING = "📦"
SUCCESS = "✅"
ERROR = "❌"
SERVER = "📡"


class TrunkError(Exception):
    """Raised when a build, configuration or filesystem step fails."""


@functools.cache
def _cwd() -> Path:
    try:
        return Path.cwd()
    except OSError as err:
        raise TrunkError("error getting current dir") from err


def parse_public_url(val: str) -> str:
    """Ensure a public URL starts and ends with a slash."""
    prefix = "" if val.startswith("/") else "/"
    suffix = "" if val.endswith("/") else "/"
    return f"{prefix}{val}{suffix}"


def copy_dir_recursive(from_dir: str | os.PathLike[str], to_dir: str | os.PathLike[str]) -> None:
    """Copy the contents of ``from_dir`` into ``to_dir``, overwriting existing files."""
    if not path_exists(from_dir):
        raise TrunkError(
            f"directory can not be copied as it does not exist {str(from_dir)!r}"
        )
    try:
        shutil.copytree(from_dir, to_dir, dirs_exist_ok=True)
    except (OSError, shutil.Error) as err:
        raise TrunkError("error copying directory") from err


def remove_dir_all(path: str | os.PathLike[str]) -> None:
    """Recursively delete a directory; a missing directory is not an error."""
    if not path_exists(path):
        return
    try:
        shutil.rmtree(path)
    except OSError as err:
        raise TrunkError("error removing directory") from err


def path_exists(path: str | os.PathLike[str]) -> bool:
    """Return whether the path exists, raising for errors other than not-found."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except OSError as err:
        raise TrunkError(
            f"error checking for existence of path at {str(path)!r}"
        ) from err
    return True


def is_executable(path: str | os.PathLike[str]) -> bool:
    """Return whether the path exists, is a regular file and is executable by its owner."""
    try:
        meta = os.stat(path)
    except FileNotFoundError:
        return False
    except OSError as err:
        raise TrunkError(f"error checking file mode for file {str(path)!r}") from err
    if not stat.S_ISREG(meta.st_mode):
        return False
    if os.name == "posix":
        return bool(meta.st_mode & 0o100)
    return True


def strip_prefix(target: str | os.PathLike[str]) -> Path:
    """Strip the current working directory prefix from ``target`` if it has one."""
    target_path = Path(target)
    try:
        return target_path.relative_to(_cwd())
    except ValueError:
        return target_path


def run_command(
    name: str, path: str | os.PathLike[str], args: Iterable[str | os.PathLike[str]]
) -> None:
    """Run a command with inherited output and raise if it does not succeed."""
    arg_list = [os.fspath(arg) for arg in args]
    log.debug("%s args: %r", name, arg_list)
    try:
        completed = subprocess.run([os.fspath(path), *arg_list], check=False)
    except OSError as err:
        raise TrunkError(f"error spawning {name} call") from err
    if completed.returncode != 0:
        raise TrunkError(f"{name} call returned a bad status")