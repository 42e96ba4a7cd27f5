"""
basedex CLI

Entry point: ``basedex`` (see basedex.cli.main).
"""

from .main import cli, main

__all__ = ["cli", "main"]
