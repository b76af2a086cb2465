# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

"""Events emitted on a run's output channel."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from .run import RunOutcome


class StdoutChunk(BaseModel):
    type: Literal["stdout"] = "stdout"
    run_id: str
    data: str


class StderrChunk(BaseModel):
    type: Literal["stderr"] = "stderr"
    run_id: str
    data: str


class OutcomeEvent(BaseModel):
    """The last event of every run."""

    type: Literal["outcome"] = "outcome"
    run_id: str
    outcome: RunOutcome


RunEvent = Annotated[Union[StdoutChunk, StderrChunk, OutcomeEvent], Field(discriminator="type")]
