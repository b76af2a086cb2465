# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

import sys
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from coreason_runner.models import ProjectKind


class RunnerConfig(BaseSettings):
    """
    Configuration for the execution engine.
    """

    # Projects addressed by id live under this directory
    workspace_root: Path = Path("workspaces")

    script_timeout_ms: int = 10_000
    install_timeout_ms: int = 60_000
    server_timeout_ms: int = 300_000

    kill_grace_period: float = 5.0  # seconds between SIGTERM and SIGKILL
    drain_timeout: float = 1.0  # seconds to wait for pipes after exit

    preview_host: str = "localhost"
    base_port: int = 3000
    port_scan_limit: int = 100

    python_executable: str = sys.executable
    node_executable: str = "node"
    npm_executable: str = "npm"

    event_buffer_size: int = 256
    keep_workdirs: bool = False

    model_config = SettingsConfigDict(
        env_prefix="COREASON_RUNNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def default_timeout_ms(self, kind: ProjectKind) -> int:
        """Deadline used when the caller does not pass one."""
        if kind.is_server:
            return self.server_timeout_ms
        return self.script_timeout_ms
