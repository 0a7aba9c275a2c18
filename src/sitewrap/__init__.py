"""Wrap websites into native desktop bundles by driving an external build toolchain."""

__version__ = "0.1.0"
