# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class ReadinessPredicate(Protocol):
    """
    Decides from one chunk of live output whether a dev server is ready.
    """

    def __call__(self, chunk: str) -> bool: ...


@dataclass(frozen=True)
class SubstringReadiness:
    """Ready as soon as a chunk contains any of the known banner fragments.

    This is a heuristic. A signature split across two chunks, or a dev server
    with an unfamiliar banner, goes unnoticed, and a program printing one of
    these words is taken as ready.
    """

    signatures: tuple[str, ...]

    def __call__(self, chunk: str) -> bool:
        return any(signature in chunk for signature in self.signatures)


BUNDLER_READINESS = SubstringReadiness(("Local:", "ready", "compiled", "Started on"))
FRAMEWORK_READINESS = SubstringReadiness(("Local:", "ready", "Ready in", "compiled"))
