from __future__ import annotations

"""Shared data structures for build metadata, modules and scan results.

The definitions live in domain-focused modules; this module re-exports them so
callers have a single stable import path.
"""

from .types_buildinfo import BuildInfo, ModuleReference
from .types_module import License, Module
from .types_result import Decision, EvaluatedModule, Summary

__all__ = [
    "BuildInfo",
    "Decision",
    "EvaluatedModule",
    "License",
    "Module",
    "ModuleReference",
    "Summary",
]
