# trunkcfg

Layered configuration and build plumbing for bundling a Rust WASM web
application.

## Configuration layers

Settings come from three layers. Each layer overrides the one before it:

1. A `Trunk.toml` file (`ConfigOpts.from_file`). Relative paths in the file
   resolve against the file's own directory. Relative `[build].target`,
   `[watch].watch` and `[watch].ignore` paths must exist.
2. `TRUNK_BUILD_*`, `TRUNK_WATCH_*`, `TRUNK_SERVE_*`, `TRUNK_CLEAN_*` and
   `TRUNK_TOOLS_*` environment variables (`ConfigOpts.from_env`). For example,
   `TRUNK_BUILD_RELEASE=true` or `TRUNK_WATCH_IGNORE=a,b`.
3. Options given in code as `ConfigOptsBuild`, `ConfigOptsWatch`,
   `ConfigOptsServe` and `ConfigOptsClean`. They are applied with
   `layer_build`, `layer_watch`, `layer_serve` and `layer_clean`.

`ConfigOpts.full(config)` returns the file layer merged with the environment
layer. `ConfigOpts.merge(lesser, greater)` combines two layers. Some flags
stay on once any layer turns them on: `release`, `open`, `no_autoreload`,
`proxy_ws` and `cargo`. The `[[proxy]]` and `[[hooks]]` lists are never
merged. The list from the higher layer replaces the lower one whole.

## Runtime configuration

The functions in `trunkcfg.runtime` resolve every layer into a frozen runtime
configuration:

- `rtc_build` returns an `RtcBuild`.
- `rtc_watch` returns an `RtcWatch`.
- `rtc_serve` returns an `RtcServe`.
- `rtc_clean` returns an `RtcClean`.

Defaults:

- The target is `index.html`.
- The dist dir is `dist` next to the target.
- The public URL is `/`.
- `filehash` is on.
- The server address is `127.0.0.1` and the port is `8080`.

`rtc_build`, `rtc_watch` and `rtc_serve` create the dist directory if it does
not exist yet. Combining `all_features` with `no_default_features` or
`features` raises an error.

## Building

```python
from trunkcfg.build import BuildSystem
from trunkcfg.models import ConfigOptsBuild
from trunkcfg.runtime import rtc_build

def pipeline(cfg):
    (cfg.staging_dist / "index.html").write_text("<html></html>")

cfg = rtc_build(ConfigOptsBuild(release=True), None)
BuildSystem(cfg, pipeline).build()
```

`BuildSystem.build()` runs the build in these steps:

1. It empties `dist/.stage`.
2. It calls your pipeline with the runtime config.
3. If the pipeline succeeds, it replaces the contents of `dist` with the staged
   files and removes `dist/.stage`.

## Hooks

Hooks listed under `[[hooks]]` in `Trunk.toml` run at their configured stage:

- `spawn_hooks(cfg, stage)` starts the hooks for that stage and returns
  `HookHandle`s.
- `wait_hooks(handles)` waits for them and raises on the first failure.

Each hook receives the variables from `hook_environment(cfg)` in its
environment: `TRUNK_PROFILE`, `TRUNK_HTML_FILE`, `TRUNK_SOURCE_DIR`,
`TRUNK_STAGING_DIR`, `TRUNK_DIST_DIR` and `TRUNK_PUBLIC_URL`.

## Other helpers

- `trunkcfg.manifest.CargoMetadata.load(manifest)` runs `cargo metadata` and
  picks out the root package.
- `trunkcfg.common` provides:
  - `parse_public_url`
  - `copy_dir_recursive`
  - `remove_dir_all`
  - `path_exists`
  - `is_executable`
  - `strip_prefix`
  - `run_command`

Failures raise `trunkcfg.common.TrunkError`.

## What it does not do

This package is a library only. It installs no command-line program.

It has no HTML asset pipeline of its own. `BuildSystem` runs whatever pipeline
callable you give it.

The runtime configs for watching and serving describe those systems. The
package itself contains no file watcher, development server or proxy.

`rtc_clean` resolves the clean settings, but nothing in the package acts on
them. Deleting the dist directory, running `cargo clean` or emptying a tools
cache is left to the caller.