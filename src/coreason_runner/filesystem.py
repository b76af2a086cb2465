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
from typing import Literal

import aiofiles  # type: ignore[import-untyped]
import anyio
from pydantic import BaseModel

from coreason_runner.models import FileNode
from coreason_runner.utils.logger import logger

IGNORED_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        ".next",
        "coverage",
        ".cache",
        ".vscode",
        ".idea",
        "__pycache__",
        ".pytest_cache",
        "venv",
        "env",
        ".env",
        "target",
        "vendor",
    }
)
IGNORED_FILES = frozenset({".DS_Store", "Thumbs.db", ".gitkeep"})


class PathTraversalError(PermissionError):
    """Raised when a path resolves outside of the project root."""


class DirectoryEntry(BaseModel):
    name: str
    path: str
    type: Literal["file", "folder"]
    size: int | None = None


def is_ignored(name: str, is_directory: bool) -> bool:
    if name.startswith(".") and name != ".env.example":
        return True
    if is_directory:
        return name in IGNORED_DIRS
    return name in IGNORED_FILES


class ProjectFileSystem:
    """File access scoped to one project root.

    Every path is interpreted relative to the root. A path that resolves
    outside of it is rejected with PathTraversalError rather than clamped.
    """

    def __init__(self, root: Path):
        """Initializes the ProjectFileSystem.

        Args:
            root: The project root directory. It does not need to exist yet.
        """
        self.root = root.resolve()

    def resolve(self, relative_path: str) -> Path:
        """Map a project-relative path to an absolute path under the root.

        Raises:
            PathTraversalError: If the path escapes the project root.
        """
        target = (self.root / relative_path).resolve()
        try:
            target.relative_to(self.root)
        except ValueError as e:
            logger.warning(f"Rejected path outside project root: {relative_path}")
            raise PathTraversalError(f"Path traversal not allowed: {relative_path}") from e
        return target

    async def read_file(self, path: str) -> str:
        """Read a text file.

        Raises:
            PathTraversalError: If the path escapes the project root.
            FileNotFoundError: If the file does not exist.
        """
        resolved = self.resolve(path)
        async with aiofiles.open(resolved, "r", encoding="utf-8", errors="replace") as f:
            content: str = await f.read()
        return content

    async def write_file(self, path: str, content: str) -> None:
        """Write a text file, creating parent directories as needed."""
        resolved = self.resolve(path)
        await anyio.Path(resolved.parent).mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(resolved, "w", encoding="utf-8") as f:
            await f.write(content)

    async def list_directory(self, path: str = ".") -> list[DirectoryEntry]:
        """List a directory, folders first, skipping ignored entries."""
        resolved = self.resolve(path)
        entries: list[DirectoryEntry] = []
        async for child in anyio.Path(resolved).iterdir():
            is_dir = await child.is_dir()
            if is_ignored(child.name, is_dir):
                continue
            stat = await child.stat()
            entries.append(
                DirectoryEntry(
                    name=child.name,
                    path=Path(child).relative_to(self.root).as_posix(),
                    type="folder" if is_dir else "file",
                    size=None if is_dir else stat.st_size,
                )
            )
        entries.sort(key=lambda entry: (entry.type != "folder", entry.name))
        return entries

    async def load_tree(self, path: str = ".") -> FileNode:
        """Build an in-memory project tree from the directory at `path`."""
        resolved = self.resolve(path)
        children = await self._load_children(path)
        name = "" if resolved == self.root else resolved.name
        return FileNode(type="folder", name=name, children=tuple(children))

    async def _load_children(self, path: str) -> list[FileNode]:
        nodes: list[FileNode] = []
        for entry in await self.list_directory(path):
            if entry.type == "folder":
                children = await self._load_children(entry.path)
                nodes.append(FileNode(type="folder", name=entry.name, children=tuple(children)))
            else:
                nodes.append(FileNode.file(entry.name, await self.read_file(entry.path)))
        return nodes

    async def write_tree(self, tree: FileNode) -> None:
        """Materialize a project tree under the root.

        The tree's root node stands for the project root itself; a file root
        is written directly under the root.
        """
        await anyio.Path(self.root).mkdir(parents=True, exist_ok=True)
        for path, node in tree.iter_files():
            await self.write_file(path, node.content or "")
        # Empty folders are part of the tree too
        await self._write_folders(tree, "")

    async def _write_folders(self, node: FileNode, prefix: str) -> None:
        for child in node.children:
            if not child.is_file:
                path = f"{prefix}{child.name}"
                await anyio.Path(self.resolve(path)).mkdir(parents=True, exist_ok=True)
                await self._write_folders(child, f"{path}/")
