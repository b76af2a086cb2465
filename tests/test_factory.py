# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

import pytest

from coreason_runner.factory import StrategyFactory
from coreason_runner.models import ProjectKind
from coreason_runner.strategies import (
    DevServerStrategy,
    FrameworkServerStrategy,
    NodeScriptStrategy,
    PythonScriptStrategy,
    StaticSiteStrategy,
)
from coreason_runner.strategy import ExecutionStrategy


@pytest.mark.parametrize(
    "kind, expected",
    [
        (ProjectKind.PLAIN_SCRIPT, NodeScriptStrategy),
        (ProjectKind.DEPENDENCY_MANAGED_SCRIPT, PythonScriptStrategy),
        (ProjectKind.BUNDLER_DEV_SERVER, DevServerStrategy),
        (ProjectKind.FRAMEWORK_SERVER, FrameworkServerStrategy),
        (ProjectKind.STATIC_SITE, StaticSiteStrategy),
    ],
)
def test_factory_maps_every_kind(kind: ProjectKind, expected: type) -> None:
    strategy = StrategyFactory.get_strategy(kind)
    assert type(strategy) is expected
    assert isinstance(strategy, ExecutionStrategy)


def test_factory_returns_fresh_instances() -> None:
    first = StrategyFactory.get_strategy(ProjectKind.PLAIN_SCRIPT)
    second = StrategyFactory.get_strategy(ProjectKind.PLAIN_SCRIPT)
    assert first is not second
