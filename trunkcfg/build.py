"""Build system: staging, running the asset pipeline and applying the result."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass

from trunkcfg.common import BUILDING, ERROR, SUCCESS, TrunkError, remove_dir_all
from trunkcfg.runtime import STAGE_DIR, RtcBuild

__all__ = ["BuildSystem"]

log = logging.getLogger(__name__)


@dataclass
class BuildSystem:
    """Drives a build: prepares the staging dir, runs the pipeline, then applies the output.

    ``pipeline`` is called with the runtime config and is expected to write its
    output into ``cfg.staging_dist``.
    """

    cfg: RtcBuild
    pipeline: Callable[[RtcBuild], None]

    def build(self) -> None:
        """Run a complete build, logging its outcome."""
        log.info("%s starting build", BUILDING)
        try:
            self._do_build()
        except TrunkError as err:
            log.error("%s error\n%s", ERROR, err)
            raise
        log.info("%s success", SUCCESS)

    def _do_build(self) -> None:
        try:
            self.cfg.final_dist.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise TrunkError("error creating build environment directory: dist") from err

        try:
            self.prepare_staging_dist()
        except TrunkError as err:
            raise TrunkError("error preparing build environment") from err

        try:
            self.pipeline(self.cfg)
        except Exception as err:
            raise TrunkError("error from HTML pipeline") from err

        try:
            self.finalize_dist()
        except TrunkError as err:
            raise TrunkError("error applying built distribution") from err

    def prepare_staging_dist(self) -> None:
        """Create an empty staging dir, removing any left over from an earlier build."""
        staging = self.cfg.staging_dist
        try:
            remove_dir_all(staging)
        except TrunkError as err:
            raise TrunkError("error cleaning staging dist dir") from err
        try:
            staging.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise TrunkError(
                "error creating build environment directory: staging dist dir"
            ) from err

    def finalize_dist(self) -> None:
        """Replace the contents of the dist dir with the staged build and drop the staging dir."""
        log.info("applying new distribution")
        self._clean_final()
        self._move_stage_to_final()
        try:
            self.cfg.staging_dist.rmdir()
        except OSError as err:
            raise TrunkError("error deleting staging dist dir") from err

    def _move_stage_to_final(self) -> None:
        final_dist = self.cfg.final_dist
        try:
            entries = list(os.scandir(self.cfg.staging_dist))
        except OSError as err:
            raise TrunkError("error reading staging dist dir") from err
        for entry in entries:
            target = final_dist / entry.name
            try:
                os.replace(entry.path, target)
            except OSError as err:
                raise TrunkError(
                    f"error moving {entry.path!r} to {str(target)!r}"
                ) from err

    def _clean_final(self) -> None:
        try:
            entries = list(os.scandir(self.cfg.final_dist))
        except OSError as err:
            raise TrunkError("error reading final dist dir") from err
        for entry in entries:
            if entry.name == STAGE_DIR:
                continue
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_link = entry.is_symlink()
                is_file = entry.is_file(follow_symlinks=False)
            except OSError as err:
                raise TrunkError("error reading metadata of file in final dist dir") from err
            try:
                if is_dir:
                    remove_dir_all(entry.path)
                elif is_link or is_file:
                    os.remove(entry.path)
            except (OSError, TrunkError) as err:
                raise TrunkError("error cleaning final dist") from err