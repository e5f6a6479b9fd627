"""Layered configuration models: config file, environment and command line."""

from __future__ import annotations

import ipaddress
import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from trunkcfg.common import TrunkError

__all__ = [
    "ConfigOpts",
    "ConfigOptsBuild",
    "ConfigOptsClean",
    "ConfigOptsHook",
    "ConfigOptsProxy",
    "ConfigOptsServe",
    "ConfigOptsTools",
    "ConfigOptsWatch",
    "layer_build",
    "layer_clean",
    "layer_serve",
    "layer_watch",
    "parse_uri",
]

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def parse_uri(value: str) -> str:
    """Validate a URI string and return it unchanged."""
    if not isinstance(value, str):
        raise TrunkError("invalid uri: expected a string")
    if not value:
        raise TrunkError("invalid uri: empty string")
    for ch in value:
        if ord(ch) > 0x7E or ord(ch) < 0x21:
            raise TrunkError("invalid uri character")
    if "://" in value:
        parts = urlsplit(value)
        if not parts.scheme or not parts.netloc:
            raise TrunkError("invalid uri: missing scheme or authority")
        try:
            parts.port
        except ValueError as err:
            raise TrunkError("invalid uri: invalid port") from err
    return value


@dataclass
class ConfigOptsBuild:
    """Config options for the build system."""

    target: Path | None = None
    release: bool = False
    dist: Path | None = None
    public_url: str | None = None
    no_default_features: bool = False
    all_features: bool = False
    features: str | None = None
    filehash: bool | None = None
    pattern_script: str | None = None
    pattern_preload: str | None = None
    pattern_params: dict[str, str] | None = None


@dataclass
class ConfigOptsWatch:
    """Config options for the watch system."""

    watch: list[Path] | None = None
    ignore: list[Path] | None = None


@dataclass
class ConfigOptsServe:
    """Config options for the serve system."""

    address: IPAddress | None = None
    port: int | None = None
    open: bool = False
    proxy_backend: str | None = None
    proxy_rewrite: str | None = None
    proxy_ws: bool = False
    proxy_insecure: bool = False
    no_autoreload: bool = False


@dataclass
class ConfigOptsClean:
    """Config options for the clean system."""

    dist: Path | None = None
    cargo: bool = False


@dataclass
class ConfigOptsTools:
    """Versions of the tools that are downloaded automatically."""

    sass: str | None = None
    wasm_bindgen: str | None = None
    wasm_opt: str | None = None


@dataclass
class ConfigOptsProxy:
    """A proxy definition; only read from the config file."""

    backend: str
    rewrite: str | None = None
    ws: bool = False
    insecure: bool = False


@dataclass
class ConfigOptsHook:
    """A build hook: a command run at a given pipeline stage."""

    stage: str
    command: str
    command_arguments: list[str] = field(default_factory=list)


_KINDS: dict[type, dict[str, str]] = {
    ConfigOptsBuild: {
        "target": "path",
        "release": "flag",
        "dist": "path",
        "public_url": "str",
        "no_default_features": "flag",
        "all_features": "flag",
        "features": "str",
        "filehash": "bool",
        "pattern_script": "str",
        "pattern_preload": "str",
        "pattern_params": "str_map",
    },
    ConfigOptsWatch: {"watch": "paths", "ignore": "paths"},
    ConfigOptsServe: {
        "address": "ip",
        "port": "port",
        "open": "flag",
        "proxy_backend": "uri",
        "proxy_rewrite": "str",
        "proxy_ws": "flag",
        "proxy_insecure": "flag",
        "no_autoreload": "flag",
    },
    ConfigOptsClean: {"dist": "path", "cargo": "flag"},
    ConfigOptsTools: {"sass": "str", "wasm_bindgen": "str", "wasm_opt": "str"},
    ConfigOptsProxy: {
        "backend": "uri",
        "rewrite": "str",
        "ws": "flag",
        "insecure": "flag",
    },
    ConfigOptsHook: {"stage": "str", "command": "str", "command_arguments": "str_list"},
}

_REQUIRED: dict[type, tuple[str, ...]] = {
    ConfigOptsProxy: ("backend",),
    ConfigOptsHook: ("stage", "command"),
}


def _expect(value: Any, kind: type, what: str) -> Any:
    if not isinstance(value, kind) or (kind is not bool and isinstance(value, bool)):
        raise TypeError(f"expected {what}")
    return value


def _bool_text(text: str) -> bool:
    if text == "true":
        return True
    if text == "false":
        return False
    raise ValueError("provided string was not `true` or `false`")


def _port(value: Any, from_env: bool) -> int:
    if from_env:
        if not value.isdigit():
            raise ValueError("invalid digit found in string")
        port = int(value)
    else:
        port = _expect(value, int, "an integer")
    if not 0 <= port <= 0xFFFF:
        raise ValueError("number too large to fit in target type")
    return port


def _coerce(kind: str, value: Any, from_env: bool) -> Any:
    if kind == "str":
        return _expect(value, str, "a string")
    if kind in ("flag", "bool"):
        return _bool_text(value) if from_env else _expect(value, bool, "a boolean")
    if kind == "path":
        return Path(_expect(value, str, "a path string"))
    if kind == "paths":
        if from_env:
            return [Path(item) for item in value.split(",")]
        return [Path(_expect(item, str, "a path string")) for item in _expect(value, list, "a list")]
    if kind == "str_list":
        if from_env:
            return value.split(",")
        return [_expect(item, str, "a string") for item in _expect(value, list, "a list")]
    if kind == "str_map":
        if from_env:
            raise TypeError("a map can not be read from an environment variable")
        mapping = _expect(value, dict, "a table")
        return {
            _expect(key, str, "a string"): _expect(item, str, "a string")
            for key, item in mapping.items()
        }
    if kind == "ip":
        return ipaddress.ip_address(_expect(value, str, "an IP address string"))
    if kind == "port":
        return _port(value, from_env)
    if kind == "uri":
        return parse_uri(_expect(value, str, "a URI string"))
    raise ValueError(f"unknown field kind {kind}")


def _load(cls: type, data: Mapping[str, Any], *, from_env: bool = False) -> Any:
    if not isinstance(data, Mapping):
        raise TrunkError(f"invalid type for {cls.__name__}: expected a table")
    kwargs: dict[str, Any] = {}
    for name, kind in _KINDS[cls].items():
        if name in data:
            try:
                kwargs[name] = _coerce(kind, data[name], from_env)
            except (TypeError, ValueError, TrunkError) as err:
                raise TrunkError(f"invalid value for field `{name}`: {err}") from err
        elif name in _REQUIRED.get(cls, ()):
            raise TrunkError(f"missing field `{name}`")
    return cls(**kwargs)


def _load_list(cls: type, value: Any) -> list[Any]:
    if not isinstance(value, list):
        raise TrunkError(f"invalid type for {cls.__name__} list: expected an array")
    return [_load(cls, item) for item in value]


def _debug(path: Path) -> str:
    return json.dumps(str(path), ensure_ascii=False)


def _canonical_in(parent: Path, path: Path, what: str, config_path: Path) -> Path:
    try:
        return (parent / path).resolve(strict=True)
    except OSError as err:
        raise TrunkError(
            f"error taking canonical path to {what} {_debug(path)} in {_debug(config_path)}"
        ) from err


def _pick(greater: Any, lesser: Any) -> Any:
    return greater if greater is not None else lesser


@dataclass
class ConfigOpts:
    """All configuration options, as read from one layer or merged from several."""

    build: ConfigOptsBuild | None = None
    watch: ConfigOptsWatch | None = None
    serve: ConfigOptsServe | None = None
    clean: ConfigOptsClean | None = None
    tools: ConfigOptsTools | None = None
    proxy: list[ConfigOptsProxy] | None = None
    hooks: list[ConfigOptsHook] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConfigOpts:
        """Build a config layer from parsed config-file data."""
        if not isinstance(data, Mapping):
            raise TrunkError("invalid config data: expected a table")
        sections = {
            "build": ConfigOptsBuild,
            "watch": ConfigOptsWatch,
            "serve": ConfigOptsServe,
            "clean": ConfigOptsClean,
            "tools": ConfigOptsTools,
        }
        kwargs: dict[str, Any] = {
            name: _load(section, data[name])
            for name, section in sections.items()
            if name in data
        }
        if "proxy" in data:
            kwargs["proxy"] = _load_list(ConfigOptsProxy, data["proxy"])
        if "hooks" in data:
            kwargs["hooks"] = _load_list(ConfigOptsHook, data["hooks"])
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: str | os.PathLike[str] | None = None) -> ConfigOpts:
        """Read a ``Trunk.toml`` file; relative paths in it are taken relative to the file."""
        config_path = Path(path) if path is not None else Path("Trunk.toml")
        if not config_path.exists():
            return cls()
        if not config_path.is_absolute():
            try:
                config_path = config_path.resolve(strict=True)
            except OSError as err:
                raise TrunkError(
                    f"error getting canonical path to Trunk config file {_debug(config_path)}"
                ) from err
        try:
            raw = config_path.read_bytes()
        except OSError as err:
            raise TrunkError("error reading config file") from err
        try:
            cfg = cls.from_dict(tomllib.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, tomllib.TOMLDecodeError, TrunkError) as err:
            raise TrunkError("error reading config file contents as TOML data") from err

        parent = config_path.parent
        if cfg.build is not None:
            target = cfg.build.target
            if target is not None and not target.is_absolute():
                cfg.build.target = _canonical_in(parent, target, "[build].target", config_path)
            if cfg.build.dist is not None and not cfg.build.dist.is_absolute():
                cfg.build.dist = parent / cfg.build.dist
        if cfg.watch is not None:
            if cfg.watch.watch is not None:
                cfg.watch.watch = [
                    p if p.is_absolute() else _canonical_in(parent, p, "[watch].watch", config_path)
                    for p in cfg.watch.watch
                ]
            if cfg.watch.ignore is not None:
                cfg.watch.ignore = [
                    p if p.is_absolute() else _canonical_in(parent, p, "[watch].ignore", config_path)
                    for p in cfg.watch.ignore
                ]
        if cfg.clean is not None and cfg.clean.dist is not None:
            if not cfg.clean.dist.is_absolute():
                cfg.clean.dist = parent / cfg.clean.dist
        return cfg

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ConfigOpts:
        """Read a config layer from ``TRUNK_<SECTION>_<FIELD>`` environment variables."""
        env = os.environ if environ is None else environ

        def section(prefix: str, section_cls: type) -> Any:
            data = {
                key[len(prefix):].lower(): value
                for key, value in env.items()
                if key.startswith(prefix)
            }
            return _load(section_cls, data, from_env=True)

        return cls(
            build=section("TRUNK_BUILD_", ConfigOptsBuild),
            watch=section("TRUNK_WATCH_", ConfigOptsWatch),
            serve=section("TRUNK_SERVE_", ConfigOptsServe),
            clean=section("TRUNK_CLEAN_", ConfigOptsClean),
            tools=section("TRUNK_TOOLS_", ConfigOptsTools),
        )

    @classmethod
    def full(cls, config: str | os.PathLike[str] | None = None) -> ConfigOpts:
        """Return the config from the config file overlaid with environment variables."""
        file_cfg = cls.from_file(config)
        try:
            env_cfg = cls.from_env()
        except TrunkError as err:
            raise TrunkError("error reading trunk env var config") from err
        return cls.merge(file_cfg, env_cfg)

    @staticmethod
    def merge(lesser: ConfigOpts, greater: ConfigOpts) -> ConfigOpts:
        """Merge two layers; values in ``greater`` take precedence."""

        def both(attr: str, combine: Any) -> Any:
            low, high = getattr(lesser, attr), getattr(greater, attr)
            if low is None:
                return high
            if high is None:
                return low
            return combine(low, high)

        def build(l: ConfigOptsBuild, g: ConfigOptsBuild) -> ConfigOptsBuild:
            return replace(
                g,
                target=_pick(g.target, l.target),
                dist=_pick(g.dist, l.dist),
                public_url=_pick(g.public_url, l.public_url),
                filehash=_pick(g.filehash, l.filehash),
                release=g.release or l.release,
                pattern_preload=_pick(g.pattern_preload, l.pattern_preload),
                pattern_script=_pick(g.pattern_script, l.pattern_script),
                pattern_params=_pick(g.pattern_params, l.pattern_params),
            )

        def watch(l: ConfigOptsWatch, g: ConfigOptsWatch) -> ConfigOptsWatch:
            return replace(g, watch=_pick(g.watch, l.watch), ignore=_pick(g.ignore, l.ignore))

        def serve(l: ConfigOptsServe, g: ConfigOptsServe) -> ConfigOptsServe:
            return replace(
                g,
                proxy_backend=_pick(g.proxy_backend, l.proxy_backend),
                proxy_rewrite=_pick(g.proxy_rewrite, l.proxy_rewrite),
                address=_pick(g.address, l.address),
                port=_pick(g.port, l.port),
                proxy_ws=g.proxy_ws or l.proxy_ws,
                no_autoreload=g.no_autoreload or l.no_autoreload,
                open=g.open or l.open,
            )

        def tools(l: ConfigOptsTools, g: ConfigOptsTools) -> ConfigOptsTools:
            return replace(
                g,
                sass=_pick(g.sass, l.sass),
                wasm_bindgen=_pick(g.wasm_bindgen, l.wasm_bindgen),
                wasm_opt=_pick(g.wasm_opt, l.wasm_opt),
            )

        def clean(l: ConfigOptsClean, g: ConfigOptsClean) -> ConfigOptsClean:
            return replace(g, dist=_pick(g.dist, l.dist), cargo=g.cargo or l.cargo)

        # Proxies and hooks are never merged: the greater list wins whole.
        return ConfigOpts(
            build=both("build", build),
            watch=both("watch", watch),
            serve=both("serve", serve),
            clean=both("clean", clean),
            tools=both("tools", tools),
            proxy=_pick(greater.proxy, lesser.proxy),
            hooks=_pick(greater.hooks, lesser.hooks),
        )


def layer_build(cli: ConfigOptsBuild, base: ConfigOpts) -> ConfigOpts:
    """Overlay command-line build options onto ``base``."""
    return ConfigOpts.merge(base, ConfigOpts(build=replace(cli)))


def layer_watch(cli: ConfigOptsWatch, base: ConfigOpts) -> ConfigOpts:
    """Overlay command-line watch options onto ``base``."""
    return ConfigOpts.merge(base, ConfigOpts(watch=replace(cli)))


def layer_serve(cli: ConfigOptsServe, base: ConfigOpts) -> ConfigOpts:
    """Overlay command-line serve options onto ``base``."""
    return ConfigOpts.merge(base, ConfigOpts(serve=replace(cli)))


def layer_clean(cli: ConfigOptsClean, base: ConfigOpts) -> ConfigOpts:
    """Overlay command-line clean options onto ``base``."""
    return ConfigOpts.merge(base, ConfigOpts(clean=replace(cli)))