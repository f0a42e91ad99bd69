"""
Git Provider Sync - mirror repositories between git hosting providers.

This package clones the projects of a source provider into a staging
workspace and mirrors them to remote git hosts, plain directories or
tar.gz archives.
"""

__version__ = "1.0.0"
__author__ = "Git Provider Sync Team"
__description__ = "Repository mirroring engine for git hosting providers"

from .runner import main, sync

__all__ = ["main", "sync"]
