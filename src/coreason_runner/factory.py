# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

from coreason_runner.models import ProjectKind
from coreason_runner.strategies import (
    DevServerStrategy,
    FrameworkServerStrategy,
    NodeScriptStrategy,
    PythonScriptStrategy,
    StaticSiteStrategy,
)
from coreason_runner.strategy import ExecutionStrategy


class StrategyFactory:
    """
    Factory to create ExecutionStrategy instances for a project kind.
    """

    @staticmethod
    def get_strategy(kind: ProjectKind) -> ExecutionStrategy:
        """
        Returns a fresh strategy for `kind`. Strategies hold no per-run state.
        """
        if kind == ProjectKind.PLAIN_SCRIPT:
            return NodeScriptStrategy()
        elif kind == ProjectKind.DEPENDENCY_MANAGED_SCRIPT:
            return PythonScriptStrategy()
        elif kind == ProjectKind.BUNDLER_DEV_SERVER:
            return DevServerStrategy()
        elif kind == ProjectKind.FRAMEWORK_SERVER:
            return FrameworkServerStrategy()
        elif kind == ProjectKind.STATIC_SITE:
            return StaticSiteStrategy()
        else:
            # Unreachable while ProjectKind stays a closed enum
            raise ValueError(f"Unknown project kind: {kind}")  # pragma: no cover
