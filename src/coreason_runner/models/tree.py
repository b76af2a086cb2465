# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

"""In-memory project tree handed to the engine by the storage layer."""

from collections import deque
from typing import Iterator, Literal

from pydantic import BaseModel, ConfigDict, model_validator


class FileNode(BaseModel):
    """A node of a project tree: either a file with text content or a folder.

    Attributes:
        type: Either "file" or "folder".
        name: The node name. Unique among the children of one folder.
        content: Text content of a file. Always None for folders.
        children: Ordered children of a folder. Always empty for files.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["file", "folder"]
    name: str
    content: str | None = None
    children: tuple["FileNode", ...] = ()

    @model_validator(mode="after")
    def _check_shape(self) -> "FileNode":
        if self.type == "file" and self.children:
            raise ValueError(f"File node {self.name!r} cannot have children")
        seen: set[str] = set()
        for child in self.children:
            if child.name in seen:
                raise ValueError(f"Duplicate name {child.name!r} in folder {self.name!r}")
            seen.add(child.name)
        return self

    @classmethod
    def file(cls, name: str, content: str = "") -> "FileNode":
        return cls(type="file", name=name, content=content)

    @classmethod
    def folder(cls, name: str, *children: "FileNode") -> "FileNode":
        return cls(type="folder", name=name, children=children)

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    def iter_files(self) -> Iterator[tuple[str, "FileNode"]]:
        """Yield (relative_path, node) for every file, shallowest first.

        Paths are relative to this node and use "/" separators. A file root
        yields itself under its own name.
        """
        if self.is_file:
            yield self.name, self
            return

        queue: deque[tuple[str, FileNode]] = deque([("", self)])
        while queue:
            prefix, node = queue.popleft()
            for child in node.children:
                path = f"{prefix}{child.name}"
                if child.is_file:
                    yield path, child
                else:
                    queue.append((f"{path}/", child))

    def find_file(self, name: str) -> str | None:
        """Return the relative path of the shallowest file called `name`."""
        for path, node in self.iter_files():
            if node.name == name:
                return path
        return None

    def has_extension(self, extension: str) -> bool:
        return any(node.name.endswith(extension) for _, node in self.iter_files())

    def get(self, path: str) -> "FileNode | None":
        """Look up a node by its "/"-separated path relative to this node."""
        node: FileNode = self
        for part in (p for p in path.split("/") if p and p != "."):
            match = next((child for child in node.children if child.name == part), None)
            if match is None:
                return None
            node = match
        return node


ProjectTree = FileNode
