# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

"""Data models describing a single run, from classification to outcome."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ProjectKind(str, Enum):
    PLAIN_SCRIPT = "plain-script"
    DEPENDENCY_MANAGED_SCRIPT = "dependency-managed-script"
    BUNDLER_DEV_SERVER = "bundler-dev-server"
    FRAMEWORK_SERVER = "framework-server"
    STATIC_SITE = "static-site"

    @property
    def is_server(self) -> bool:
        return self in (ProjectKind.BUNDLER_DEV_SERVER, ProjectKind.FRAMEWORK_SERVER)


class DevServerFlavor(str, Enum):
    """How a bundler dev server is started: `npm run dev` or `npm start`."""

    VITE = "vite"
    CLASSIC = "classic"


class FailureKind(str, Enum):
    DEPENDENCY_INSTALL_FAILED = "dependency-install-failed"
    SPAWN_FAILED = "spawn-failed"
    NON_ZERO_EXIT = "non-zero-exit"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    INTERNAL_ERROR = "internal-error"


class Classification(BaseModel):
    """Result of inspecting a project tree.

    Attributes:
        kind: The execution strategy family for the project.
        entry_file: Path of the entry file relative to the project root, or
            None when the project is started through its dev-server script.
        flavor: Dev-server start style. Only set for bundler dev servers.
    """

    model_config = ConfigDict(frozen=True)

    kind: ProjectKind
    entry_file: str | None = None
    flavor: DevServerFlavor | None = None


class RunOptions(BaseModel):
    """Per-run configuration supplied by the caller."""

    timeout_ms: int | None = Field(default=None, gt=0)
    env: dict[str, str] = Field(default_factory=dict)
    working_directory: Path | None = None
    kind: ProjectKind | None = None
    entry_file: str | None = None


class RunSpec(BaseModel):
    """Everything a strategy needs to prepare and launch one run.

    Built once by the dispatcher and never modified afterwards.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    kind: ProjectKind
    flavor: DevServerFlavor | None = None
    entry_file: str | None = None
    working_directory: Path
    timeout_ms: int = Field(gt=0)
    env: dict[str, str] = Field(default_factory=dict)


class RunOutcome(BaseModel):
    """Terminal value of a run.

    Attributes:
        succeeded: True when the program exited 0 or the server became ready.
        stdout: Everything captured from standard output.
        stderr: Everything captured from standard error, plus engine messages.
        exit_code: Process exit code. None while still running or when killed.
        wall_clock_ms: Elapsed time of the run in milliseconds.
        preview_address: URL of the dev server. Server kinds only.
        static_root: Absolute path of the servable entry file of a static site.
        failure: Why the run failed, None on success.
    """

    succeeded: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    wall_clock_ms: int = 0
    preview_address: str | None = None
    static_root: str | None = None
    failure: FailureKind | None = None


class PrepareResult(BaseModel):
    """Result of a strategy's dependency preparation step."""

    succeeded: bool
    skipped: bool = False
    stdout: str = ""
    stderr: str = ""
