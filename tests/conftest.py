import sys
from pathlib import Path
from typing import Any

import pytest

from coreason_runner.config import RunnerConfig
from coreason_runner.models import FileNode


@pytest.fixture
def runner_config(tmp_path: Path) -> RunnerConfig:
    return RunnerConfig(
        workspace_root=tmp_path / "workspaces",
        python_executable=sys.executable,
        script_timeout_ms=10_000,
        kill_grace_period=1.0,
        drain_timeout=1.0,
    )


@pytest.fixture
def python_project() -> Any:
    def build(code: str, name: str = "main.py", *extra: FileNode) -> FileNode:
        return FileNode.folder("", FileNode.file(name, code), *extra)

    return build


@pytest.fixture
def react_vite_tree() -> FileNode:
    manifest = '{"name": "app", "dependencies": {"react": "^18.2.0", "vite": "^5.0.0"}, "scripts": {"dev": "vite"}}'
    return FileNode.folder(
        "",
        FileNode.file("package.json", manifest),
        FileNode.folder("src", FileNode.file("main.jsx", "import React from 'react';")),
    )
