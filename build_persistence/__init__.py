"""
Build Persistence module.

This module contains the database implementation of the accessor that the
controller, server and admin CLI share. Currently supports SQLite.

The persistence layer depends on build_common for domain models and
interfaces.
"""

from .sqlite_accessor import SQLiteAccessor

__all__ = ["SQLiteAccessor"]
