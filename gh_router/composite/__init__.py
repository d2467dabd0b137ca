"""Composite capabilities: field paths, merge strategies and the step orchestrator."""

from .merge import merge_outputs
from .orchestrator import CompositeOrchestrator
from .paths import MISSING, resolve_path

__all__ = ["MISSING", "CompositeOrchestrator", "merge_outputs", "resolve_path"]
