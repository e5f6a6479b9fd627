"""Access to the cargo project's metadata."""

from __future__ import annotations

import json
import os
import subprocess
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

from trunkcfg.common import TrunkError

__all__ = ["CargoMetadata"]


def _root_package(metadata: dict[str, Any]) -> dict[str, Any] | None:
    packages = metadata.get("packages") or []
    resolve = metadata.get("resolve")
    if resolve is not None:
        root = resolve.get("root")
        if root is None:
            return None
        return next((pkg for pkg in packages if pkg.get("id") == root), None)
    workspace_root = metadata.get("workspace_root")
    if workspace_root is None:
        return None
    root_manifest = PurePath(workspace_root) / "Cargo.toml"
    return next(
        (
            pkg
            for pkg in packages
            if pkg.get("manifest_path") is not None
            and PurePath(pkg["manifest_path"]) == root_manifest
        ),
        None,
    )


@dataclass(frozen=True)
class CargoMetadata:
    """The cargo project's metadata together with its root package."""

    metadata: dict[str, Any]
    package: dict[str, Any]
    manifest_path: str

    @classmethod
    def from_json(cls, data: dict[str, Any] | str | bytes) -> CargoMetadata:
        """Build an instance from ``cargo metadata`` JSON output."""
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except ValueError as err:
                raise TrunkError("error getting cargo metadata") from err
        package = _root_package(data)
        if package is None:
            raise TrunkError("could not find root package of the target crate")
        return cls(
            metadata=data,
            package=package,
            manifest_path=str(package["manifest_path"]),
        )

    @classmethod
    def load(cls, manifest: str | os.PathLike[str]) -> CargoMetadata:
        """Run ``cargo metadata`` for the Cargo.toml at ``manifest``."""
        cargo = os.environ.get("CARGO", "cargo")
        cmd = [
            cargo,
            "metadata",
            "--format-version",
            "1",
            "--manifest-path",
            os.fspath(manifest),
        ]
        try:
            completed = subprocess.run(cmd, capture_output=True, check=False)
        except OSError as err:
            raise TrunkError("error getting cargo metadata") from err
        if completed.returncode != 0:
            detail = completed.stderr.decode("utf-8", errors="replace").strip()
            raise TrunkError(f"error getting cargo metadata: {detail}")
        stdout = completed.stdout.decode("utf-8", errors="replace")
        line = next(
            (ln for ln in stdout.splitlines() if ln.startswith("{")), stdout
        )
        return cls.from_json(line)