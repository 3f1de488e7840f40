"""
Build Controller module.

This module contains the reconciliation core (status projection, build
construction, the per-key reconciler, the duplicate job terminator) and the
controller loop that drives it.
"""

from .config import ControllerConfig
from .controller import BuildController
from .duplicates import DuplicateTerminator
from .reconciler import Reconciler

__all__ = ["BuildController", "ControllerConfig", "DuplicateTerminator", "Reconciler"]
