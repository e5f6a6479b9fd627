"""Layered configuration, build hooks and dist staging for WASM web apps."""

__version__ = "0.1.0"
__all__ = ["build", "common", "hooks", "manifest", "models", "runtime"]