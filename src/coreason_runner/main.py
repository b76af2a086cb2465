# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

from pathlib import Path

from mcp.server.fastmcp import FastMCP
from mcp.types import TextContent

from coreason_runner.dispatcher import RunDispatcher
from coreason_runner.filesystem import ProjectFileSystem
from coreason_runner.models import RunOptions

# Initialize Engine
dispatcher = RunDispatcher()

# Initialize MCP Server
mcp = FastMCP("coreason-runner")


def _project_root(project_id: str) -> Path:
    """Resolve a project id to its directory inside the workspace root."""
    root = ProjectFileSystem(dispatcher.config.workspace_root).resolve(project_id)
    if not root.is_dir():
        raise FileNotFoundError(f"Project not found: {project_id}")
    return root


@mcp.tool()  # type: ignore[misc]
async def start_run(
    project_id: str, timeout_ms: int | None = None, env: dict[str, str] | None = None
) -> list[TextContent]:
    """
    Run a workspace project.
    Returns stdout, stderr, exit code and, for dev servers, the preview address.
    """
    try:
        root = _project_root(project_id)
        tree = await ProjectFileSystem(root).load_tree()
        options = RunOptions(timeout_ms=timeout_ms, env=env or {}, working_directory=root)
        handle = await dispatcher.start_run(tree, options)
        # Output is reported once, from the outcome
        await handle.aclose()
        outcome = await handle.wait()
    except Exception as e:
        return [TextContent(type="text", text=f"Error starting run: {e!s}")]

    output = [TextContent(type="text", text=f"Run ID: {handle.run_id}")]

    if outcome.stdout:
        output.append(TextContent(type="text", text=f"STDOUT:\n{outcome.stdout}"))

    if outcome.stderr:
        output.append(TextContent(type="text", text=f"STDERR:\n{outcome.stderr}"))

    if outcome.exit_code is not None:
        output.append(TextContent(type="text", text=f"Exit Code: {outcome.exit_code}"))

    if outcome.failure is not None:
        output.append(TextContent(type="text", text=f"Failure: {outcome.failure.value}"))

    if outcome.wall_clock_ms:
        output.append(TextContent(type="text", text=f"Duration: {outcome.wall_clock_ms / 1000:.4f}s"))

    if outcome.preview_address:
        output.append(TextContent(type="text", text=f"Preview: {outcome.preview_address}"))

    if outcome.static_root:
        output.append(TextContent(type="text", text=f"Static Root: {outcome.static_root}"))

    return output


@mcp.tool()  # type: ignore[misc]
async def cancel_run(run_id: str) -> str:
    """
    Cancel a run and stop its process.
    """
    try:
        if await dispatcher.cancel(run_id):
            return f"Run {run_id} cancelled"
        return f"Run {run_id} not found"
    except Exception as e:
        return f"Error cancelling run: {e!s}"


@mcp.tool()  # type: ignore[misc]
async def list_files(project_id: str, path: str = ".") -> list[str]:
    """
    List files in a workspace project directory.
    """
    try:
        entries = await ProjectFileSystem(_project_root(project_id)).list_directory(path)
    except Exception as e:
        return [f"Error listing files: {e!s}"]
    return [f"{entry.path}/" if entry.type == "folder" else entry.path for entry in entries]


def main() -> None:
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":  # pragma: no cover
    main()
