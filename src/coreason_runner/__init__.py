# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

"""
coreason-runner
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .classifier import classify
from .config import RunnerConfig
from .dispatcher import RunDispatcher, RunHandle
from .factory import StrategyFactory
from .filesystem import PathTraversalError, ProjectFileSystem
from .lifecycle import ProcessController
from .models import FileNode, ProjectKind, RunOptions, RunOutcome
from .runner import Runner
from .strategy import ExecutionStrategy

__all__ = [
    "ExecutionStrategy",
    "FileNode",
    "PathTraversalError",
    "ProcessController",
    "ProjectFileSystem",
    "ProjectKind",
    "RunDispatcher",
    "RunHandle",
    "RunOptions",
    "RunOutcome",
    "Runner",
    "RunnerConfig",
    "StrategyFactory",
    "classify",
]
