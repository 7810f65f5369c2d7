"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import VMDisksModalCLI, main

__all__ = ['VMDisksModalCLI', 'main']
