[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "trunkcfg"
version = "0.1.0"
description = "Layered configuration, build hooks and dist staging for WASM web application bundling"
requires-python = ">=3.11"
dependencies = []
keywords = ["wasm", "bundler", "build", "configuration", "cargo"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["trunkcfg"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
