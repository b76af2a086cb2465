# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

"""Decides how a project tree should be executed.

Classification is pure: it only reads content already held by the tree and
never fails. Anything it cannot make sense of resolves to a default kind.
"""

import json
from typing import Any

from coreason_runner.models import Classification, DevServerFlavor, FileNode, ProjectKind

MANIFEST_NAME = "package.json"

ENTRY_CANDIDATES: dict[ProjectKind, tuple[str, ...]] = {
    ProjectKind.PLAIN_SCRIPT: ("main.js", "index.js", "app.js"),
    ProjectKind.DEPENDENCY_MANAGED_SCRIPT: ("main.py", "app.py"),
    ProjectKind.STATIC_SITE: ("index.html",),
}


def _parse_manifest(tree: FileNode) -> dict[str, Any] | None:
    node = tree.get(MANIFEST_NAME)
    if node is None or not node.is_file or node.content is None:
        return None
    try:
        manifest = json.loads(node.content)
    except ValueError:
        return None
    if not isinstance(manifest, dict):
        return None
    return manifest


def _section(manifest: dict[str, Any], key: str) -> dict[str, Any]:
    value = manifest.get(key)
    return value if isinstance(value, dict) else {}


def _depends_on(manifest: dict[str, Any], package: str) -> bool:
    return bool(_section(manifest, "dependencies").get(package) or _section(manifest, "devDependencies").get(package))


def _dev_server_flavor(manifest: dict[str, Any]) -> DevServerFlavor:
    scripts = _section(manifest, "scripts")
    start_script = scripts.get("start")

    if _depends_on(manifest, "vite"):
        return DevServerFlavor.VITE
    if _depends_on(manifest, "react-scripts") or (
        isinstance(start_script, str) and "react-scripts" in start_script
    ):
        return DevServerFlavor.CLASSIC
    if "dev" in scripts:
        return DevServerFlavor.VITE
    if "start" in scripts:
        return DevServerFlavor.CLASSIC
    return DevServerFlavor.VITE


def detect_project_kind(tree: FileNode) -> tuple[ProjectKind, DevServerFlavor | None]:
    """Return the project kind and, for bundler dev servers, the start flavor."""
    manifest = _parse_manifest(tree)
    if manifest is not None:
        if _depends_on(manifest, "next"):
            return ProjectKind.FRAMEWORK_SERVER, None
        if _depends_on(manifest, "react"):
            return ProjectKind.BUNDLER_DEV_SERVER, _dev_server_flavor(manifest)
        return ProjectKind.PLAIN_SCRIPT, None

    if tree.has_extension(".py"):
        return ProjectKind.DEPENDENCY_MANAGED_SCRIPT, None

    if tree.find_file("index.html") is not None:
        return ProjectKind.STATIC_SITE, None

    return ProjectKind.PLAIN_SCRIPT, None


def resolve_entry_file(tree: FileNode, kind: ProjectKind) -> str | None:
    """Pick the entry file for `kind`.

    Tries the conventional names in order and returns the first one present.
    When none is present the first conventional name is returned anyway.
    Server kinds return None: they are started through their dev script.
    """
    candidates = ENTRY_CANDIDATES.get(kind)
    if not candidates:
        return None
    for name in candidates:
        path = tree.find_file(name)
        if path is not None:
            return path
    return candidates[0]


def classify(tree: FileNode) -> Classification:
    kind, flavor = detect_project_kind(tree)
    return Classification(kind=kind, entry_file=resolve_entry_file(tree, kind), flavor=flavor)
