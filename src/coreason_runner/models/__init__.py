# src/coreason_runner/models/__init__.py

"""
Data models for project trees, runs and run events.
"""

from .events import OutcomeEvent, RunEvent, StderrChunk, StdoutChunk
from .run import (
    Classification,
    DevServerFlavor,
    FailureKind,
    PrepareResult,
    ProjectKind,
    RunOptions,
    RunOutcome,
    RunSpec,
)
from .tree import FileNode, ProjectTree

__all__ = [
    "Classification",
    "DevServerFlavor",
    "FailureKind",
    "FileNode",
    "OutcomeEvent",
    "PrepareResult",
    "ProjectKind",
    "ProjectTree",
    "RunEvent",
    "RunOptions",
    "RunOutcome",
    "RunSpec",
    "StderrChunk",
    "StdoutChunk",
]
