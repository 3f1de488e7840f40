"""
Build Common module.

This module contains shared domain models and interfaces used across
the build controller components (controller, persistence, server, admin).

The common module has no dependencies on other build_* modules, making it
a pure domain layer that can be imported by any component.
"""

from .accessor import Accessor
from .models import Build, ProwJob, ProwJobState

__all__ = ["Accessor", "Build", "ProwJob", "ProwJobState"]
