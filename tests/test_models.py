import ipaddress
import json
from pathlib import Path

import pytest

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
    parse_uri,
)


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def _q(path: Path) -> str:
    return json.dumps(str(path), ensure_ascii=False)


@pytest.mark.parametrize(
    "uri",
    ["http://localhost:9090/api", "https://example.com", "/api/", "localhost:8080", "*"],
)
def test_parse_uri_accepts_valid(uri):
    assert parse_uri(uri) == uri


@pytest.mark.parametrize("uri", ["", "http://bad host", "http://", "http://host:notaport/x"])
def test_parse_uri_rejects_invalid(uri):
    with pytest.raises(TrunkError):
        parse_uri(uri)


def test_bad_trunk_toml_build_target(tmp_path):
    path = _write(tmp_path / "bad-build-target.toml", '[build]\ntarget = "index.html"\n')
    with pytest.raises(TrunkError) as info:
        ConfigOpts.from_file(path)
    assert str(info.value) == (
        f'error taking canonical path to [build].target "index.html" in {_q(path)}'
    )


def test_bad_trunk_toml_watch_path(tmp_path):
    path = _write(tmp_path / "bad-watch-path.toml", '[watch]\nwatch = ["fake-dir"]\n')
    with pytest.raises(TrunkError) as info:
        ConfigOpts.from_file(path)
    assert str(info.value) == (
        f'error taking canonical path to [watch].watch "fake-dir" in {_q(path)}'
    )


def test_bad_trunk_toml_watch_ignore(tmp_path):
    path = _write(tmp_path / "bad-watch-ignore.toml", '[watch]\nignore = ["fake.html"]\n')
    with pytest.raises(TrunkError) as info:
        ConfigOpts.from_file(path)
    assert str(info.value) == (
        f'error taking canonical path to [watch].ignore "fake.html" in {_q(path)}'
    )


def test_from_file_missing_gives_empty_config(tmp_path):
    assert ConfigOpts.from_file(tmp_path / "nope.toml") == ConfigOpts()


def test_from_file_resolves_relative_paths(tmp_path):
    (tmp_path / "index.html").write_text("<html></html>")
    (tmp_path / "src").mkdir()
    path = _write(
        tmp_path / "Trunk.toml",
        '[build]\ntarget = "index.html"\ndist = "out"\nrelease = true\n'
        '[watch]\nwatch = ["src"]\n'
        '[clean]\ndist = "out"\ncargo = true\n',
    )
    cfg = ConfigOpts.from_file(path)
    assert cfg.build.target == (tmp_path / "index.html").resolve()
    assert cfg.build.dist == tmp_path / "out"
    assert cfg.build.release is True
    assert cfg.watch.watch == [(tmp_path / "src").resolve()]
    assert cfg.clean == ConfigOptsClean(dist=tmp_path / "out", cargo=True)


def test_from_file_bad_types(tmp_path):
    path = _write(tmp_path / "Trunk.toml", "[build]\nrelease = \"yes\"\n")
    with pytest.raises(TrunkError) as info:
        ConfigOpts.from_file(path)
    assert str(info.value) == "error reading config file contents as TOML data"


def test_from_dict_full_document():
    cfg = ConfigOpts.from_dict(
        {
            "serve": {"address": "0.0.0.0", "port": 9000, "proxy_backend": "http://localhost:3000/"},
            "tools": {"sass": "1.54.0"},
            "proxy": [{"backend": "http://localhost:9090/api/", "ws": True}],
            "hooks": [{"stage": "pre_build", "command": "echo", "command_arguments": ["hi"]}],
            "unknown": {"ignored": 1},
        }
    )
    assert cfg.serve.address == ipaddress.ip_address("0.0.0.0")
    assert cfg.serve.port == 9000
    assert cfg.serve.proxy_backend == "http://localhost:3000/"
    assert cfg.serve.open is False
    assert cfg.tools == ConfigOptsTools(sass="1.54.0")
    assert cfg.proxy == [ConfigOptsProxy(backend="http://localhost:9090/api/", ws=True)]
    assert cfg.hooks == [ConfigOptsHook(stage="pre_build", command="echo", command_arguments=["hi"])]
    assert cfg.build is None


def test_from_dict_hook_defaults_arguments():
    cfg = ConfigOpts.from_dict({"hooks": [{"stage": "build", "command": "ls"}]})
    assert cfg.hooks[0].command_arguments == []


def test_from_dict_proxy_requires_backend():
    with pytest.raises(TrunkError, match="missing field `backend`"):
        ConfigOpts.from_dict({"proxy": [{"ws": True}]})


def test_from_dict_port_out_of_range():
    with pytest.raises(TrunkError):
        ConfigOpts.from_dict({"serve": {"port": 70000}})


def test_from_env_reads_prefixed_variables():
    cfg = ConfigOpts.from_env(
        {
            "TRUNK_BUILD_RELEASE": "true",
            "TRUNK_BUILD_PUBLIC_URL": "/app/",
            "TRUNK_WATCH_IGNORE": "a,b",
            "TRUNK_SERVE_PORT": "9000",
            "TRUNK_SERVE_ADDRESS": "::1",
            "TRUNK_TOOLS_WASM_OPT": "version_110",
            "UNRELATED": "x",
        }
    )
    assert cfg.build.release is True
    assert cfg.build.public_url == "/app/"
    assert cfg.watch.ignore == [Path("a"), Path("b")]
    assert cfg.serve.port == 9000
    assert cfg.serve.address == ipaddress.ip_address("::1")
    assert cfg.tools.wasm_opt == "version_110"
    assert cfg.clean == ConfigOptsClean()
    assert cfg.proxy is None and cfg.hooks is None


@pytest.mark.parametrize(
    "env",
    [{"TRUNK_BUILD_RELEASE": "yes"}, {"TRUNK_SERVE_PORT": "70000"}, {"TRUNK_SERVE_ADDRESS": "nope"}],
)
def test_from_env_rejects_bad_values(env):
    with pytest.raises(TrunkError):
        ConfigOpts.from_env(env)


def test_full_env_overrides_file(tmp_path, monkeypatch):
    path = _write(tmp_path / "Trunk.toml", '[build]\npublic_url = "/file/"\nfilehash = false\n')
    monkeypatch.setenv("TRUNK_BUILD_PUBLIC_URL", "/env/")
    cfg = ConfigOpts.full(path)
    assert cfg.build.public_url == "/env/"
    assert cfg.build.filehash is False


def test_full_wraps_env_errors(tmp_path, monkeypatch):
    monkeypatch.setenv("TRUNK_SERVE_PORT", "nope")
    with pytest.raises(TrunkError) as info:
        ConfigOpts.full(tmp_path / "none.toml")
    assert str(info.value) == "error reading trunk env var config"


def test_merge_build_precedence_and_sticky_release():
    lesser = ConfigOpts(
        build=ConfigOptsBuild(release=True, public_url="/low/", dist=Path("low"), features="a")
    )
    greater = ConfigOpts(build=ConfigOptsBuild(public_url="/high/"))
    merged = ConfigOpts.merge(lesser, greater)
    assert merged.build.public_url == "/high/"
    assert merged.build.dist == Path("low")
    assert merged.build.release is True
    assert merged.build.features is None


def test_merge_serve_and_clean():
    lesser = ConfigOpts(
        serve=ConfigOptsServe(port=1, open=True, proxy_ws=True, proxy_insecure=True),
        clean=ConfigOptsClean(dist=Path("d"), cargo=True),
    )
    greater = ConfigOpts(serve=ConfigOptsServe(port=2), clean=ConfigOptsClean())
    merged = ConfigOpts.merge(lesser, greater)
    assert merged.serve.port == 2
    assert merged.serve.open is True
    assert merged.serve.proxy_ws is True
    assert merged.serve.proxy_insecure is False
    assert merged.clean == ConfigOptsClean(dist=Path("d"), cargo=True)


def test_merge_lists_take_greater_only():
    low_proxy = [ConfigOptsProxy(backend="http://low/")]
    high_proxy = [ConfigOptsProxy(backend="http://high/")]
    low_hooks = [ConfigOptsHook(stage="build", command="a")]
    merged = ConfigOpts.merge(
        ConfigOpts(proxy=low_proxy, hooks=low_hooks), ConfigOpts(proxy=high_proxy)
    )
    assert merged.proxy == high_proxy
    assert merged.hooks == low_hooks


def test_merge_tools_fill_in():
    merged = ConfigOpts.merge(
        ConfigOpts(tools=ConfigOptsTools(sass="1", wasm_bindgen="2")),
        ConfigOpts(tools=ConfigOptsTools(sass="3")),
    )
    assert merged.tools == ConfigOptsTools(sass="3", wasm_bindgen="2")


def test_layer_build_cli_wins():
    base = ConfigOpts(build=ConfigOptsBuild(target=Path("/x/index.html"), public_url="/base/"))
    layered = layer_build(ConfigOptsBuild(public_url="/cli/"), base)
    assert layered.build.public_url == "/cli/"
    assert layered.build.target == Path("/x/index.html")


def test_layer_watch_serve_clean():
    base = ConfigOpts(
        watch=ConfigOptsWatch(ignore=[Path("/i")]),
        serve=ConfigOptsServe(port=1234),
        clean=ConfigOptsClean(dist=Path("/d")),
    )
    layered = layer_clean(
        ConfigOptsClean(cargo=True),
        layer_serve(ConfigOptsServe(open=True), layer_watch(ConfigOptsWatch(watch=[Path("/w")]), base)),
    )
    assert layered.watch == ConfigOptsWatch(watch=[Path("/w")], ignore=[Path("/i")])
    assert layered.serve.port == 1234
    assert layered.serve.open is True
    assert layered.clean == ConfigOptsClean(dist=Path("/d"), cargo=True)