"""Runtime configuration derived from all config layers."""

from __future__ import annotations

import ipaddress
import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from trunkcfg.common import TrunkError
from trunkcfg.models import (
    ConfigOpts,
    ConfigOptsBuild,
    ConfigOptsClean,
    ConfigOptsHook,
    ConfigOptsProxy,
    ConfigOptsServe,
    ConfigOptsTools,
    ConfigOptsWatch,
    layer_build,
    layer_clean,
    layer_serve,
    layer_watch,
)

__all__ = [
    "DIST_DIR",
    "STAGE_DIR",
    "Features",
    "RtcBuild",
    "RtcClean",
    "RtcServe",
    "RtcWatch",
    "rtc_build",
    "rtc_clean",
    "rtc_serve",
    "rtc_watch",
]

DIST_DIR = "dist"
"""Default directory for final build artifacts."""

STAGE_DIR = ".stage"
"""Directory used to stage build artifacts during an active build."""

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def _debug(path: Path) -> str:
    return json.dumps(str(path), ensure_ascii=False)


def _canonical(path: Path, message: str) -> Path:
    try:
        return path.resolve(strict=True)
    except OSError as err:
        raise TrunkError(message) from err


@dataclass(frozen=True)
class Features:
    """Feature selection passed to cargo."""

    all_features: bool = False
    features: str | None = None
    no_default_features: bool = False

    @classmethod
    def all(cls) -> Features:
        """Use cargo's ``--all-features`` flag."""
        return cls(all_features=True)

    @classmethod
    def custom(cls, features: str | None, no_default_features: bool) -> Features:
        """An explicit, possibly empty, feature list."""
        return cls(features=features, no_default_features=no_default_features)


@dataclass(frozen=True)
class RtcBuild:
    """Runtime config for the build system."""

    target: Path
    target_parent: Path
    release: bool
    public_url: str
    filehash: bool
    final_dist: Path
    staging_dist: Path
    cargo_features: Features
    tools: ConfigOptsTools
    hooks: list[ConfigOptsHook]
    inject_autoloader: bool
    pattern_script: str | None = None
    pattern_preload: str | None = None
    pattern_params: dict[str, str] | None = None

    @classmethod
    def from_opts(
        cls,
        opts: ConfigOptsBuild,
        tools: ConfigOptsTools,
        hooks: list[ConfigOptsHook],
        inject_autoloader: bool,
    ) -> RtcBuild:
        """Resolve build options into a runtime config, creating the dist dir if needed."""
        pre_target = opts.target if opts.target is not None else Path("index.html")
        target = _canonical(
            Path(pre_target),
            f"error getting canonical path to source HTML file {_debug(Path(pre_target))}",
        )
        target_parent = target.parent

        final_dist = Path(opts.dist) if opts.dist is not None else target_parent / DIST_DIR
        if not final_dist.exists():
            try:
                final_dist.mkdir()
            except OSError as err:
                raise TrunkError(
                    f"error creating final dist directory {_debug(final_dist)}"
                ) from err
        final_dist = _canonical(final_dist, "error taking canonical path to dist dir")
        staging_dist = final_dist / STAGE_DIR

        if opts.all_features and (opts.no_default_features or opts.features is not None):
            raise TrunkError(
                "Cannot combine --all-features with --no-default-features and/or --features"
            )
        cargo_features = (
            Features.all()
            if opts.all_features
            else Features.custom(opts.features, opts.no_default_features)
        )

        return cls(
            target=target,
            target_parent=target_parent,
            release=opts.release,
            public_url=opts.public_url if opts.public_url is not None else "/",
            filehash=opts.filehash if opts.filehash is not None else True,
            final_dist=final_dist,
            staging_dist=staging_dist,
            cargo_features=cargo_features,
            tools=tools,
            hooks=list(hooks),
            inject_autoloader=inject_autoloader,
            pattern_script=opts.pattern_script,
            pattern_preload=opts.pattern_preload,
            pattern_params=opts.pattern_params,
        )


@dataclass(frozen=True)
class RtcWatch:
    """Runtime config for the watch system."""

    build: RtcBuild
    paths: list[Path] = field(default_factory=list)
    ignored_paths: list[Path] = field(default_factory=list)

    @classmethod
    def from_opts(
        cls,
        build_opts: ConfigOptsBuild,
        opts: ConfigOptsWatch,
        tools: ConfigOptsTools,
        hooks: list[ConfigOptsHook],
        inject_autoloader: bool,
    ) -> RtcWatch:
        """Resolve watch options; defaults to watching the target's parent dir."""
        build = RtcBuild.from_opts(build_opts, tools, hooks, inject_autoloader)

        paths = [
            _canonical(Path(p), f"invalid watch path provided: {_debug(Path(p))}")
            for p in opts.watch or []
        ]
        if not paths:
            paths.append(build.target_parent)

        ignored_paths = [
            _canonical(Path(p), f"invalid ignore path provided: {_debug(Path(p))}")
            for p in opts.ignore or []
        ]
        ignored_paths.append(build.final_dist)

        return cls(build=build, paths=paths, ignored_paths=ignored_paths)


@dataclass(frozen=True)
class RtcServe:
    """Runtime config for the serve system."""

    watch: RtcWatch
    address: IPAddress
    port: int
    open: bool
    proxy_backend: str | None
    proxy_rewrite: str | None
    proxy_ws: bool
    proxy_insecure: bool
    proxies: list[ConfigOptsProxy] | None
    no_autoreload: bool

    @classmethod
    def from_opts(
        cls,
        build_opts: ConfigOptsBuild,
        watch_opts: ConfigOptsWatch,
        opts: ConfigOptsServe,
        tools: ConfigOptsTools,
        hooks: list[ConfigOptsHook],
        proxies: list[ConfigOptsProxy] | None,
    ) -> RtcServe:
        """Resolve serve options; the autoloader is injected unless auto-reload is off."""
        watch = RtcWatch.from_opts(
            build_opts, watch_opts, tools, hooks, not opts.no_autoreload
        )
        return cls(
            watch=watch,
            address=opts.address
            if opts.address is not None
            else ipaddress.IPv4Address("127.0.0.1"),
            port=opts.port if opts.port is not None else 8080,
            open=opts.open,
            proxy_backend=opts.proxy_backend,
            proxy_rewrite=opts.proxy_rewrite,
            proxy_ws=opts.proxy_ws,
            proxy_insecure=opts.proxy_insecure,
            proxies=proxies,
            no_autoreload=opts.no_autoreload,
        )


@dataclass(frozen=True)
class RtcClean:
    """Runtime config for the clean system."""

    dist: Path
    cargo: bool

    @classmethod
    def from_opts(cls, opts: ConfigOptsClean) -> RtcClean:
        """Resolve clean options."""
        return cls(
            dist=Path(opts.dist) if opts.dist is not None else Path(DIST_DIR),
            cargo=opts.cargo,
        )


def rtc_build(
    cli_build: ConfigOptsBuild | None = None,
    config: str | os.PathLike[str] | None = None,
) -> RtcBuild:
    """Runtime config for the build system from all config layers."""
    layered = layer_build(cli_build or ConfigOptsBuild(), ConfigOpts.full(config))
    return RtcBuild.from_opts(
        layered.build or ConfigOptsBuild(),
        layered.tools or ConfigOptsTools(),
        layered.hooks or [],
        False,
    )


def rtc_watch(
    cli_build: ConfigOptsBuild | None = None,
    cli_watch: ConfigOptsWatch | None = None,
    config: str | os.PathLike[str] | None = None,
) -> RtcWatch:
    """Runtime config for the watch system from all config layers."""
    layered = layer_build(cli_build or ConfigOptsBuild(), ConfigOpts.full(config))
    layered = layer_watch(cli_watch or ConfigOptsWatch(), layered)
    return RtcWatch.from_opts(
        layered.build or ConfigOptsBuild(),
        layered.watch or ConfigOptsWatch(),
        layered.tools or ConfigOptsTools(),
        layered.hooks or [],
        False,
    )


def rtc_serve(
    cli_build: ConfigOptsBuild | None = None,
    cli_watch: ConfigOptsWatch | None = None,
    cli_serve: ConfigOptsServe | None = None,
    config: str | os.PathLike[str] | None = None,
) -> RtcServe:
    """Runtime config for the serve system from all config layers."""
    layered = layer_build(cli_build or ConfigOptsBuild(), ConfigOpts.full(config))
    layered = layer_watch(cli_watch or ConfigOptsWatch(), layered)
    layered = layer_serve(cli_serve or ConfigOptsServe(), layered)
    return RtcServe.from_opts(
        layered.build or ConfigOptsBuild(),
        layered.watch or ConfigOptsWatch(),
        layered.serve or ConfigOptsServe(),
        layered.tools or ConfigOptsTools(),
        layered.hooks or [],
        layered.proxy,
    )


def rtc_clean(
    cli_clean: ConfigOptsClean | None = None,
    config: str | os.PathLike[str] | None = None,
) -> RtcClean:
    """Runtime config for the clean system from all config layers."""
    layered = layer_clean(cli_clean or ConfigOptsClean(), ConfigOpts.full(config))
    return RtcClean.from_opts(layered.clean or ConfigOptsClean())