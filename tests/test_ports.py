# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_runner

import socket
from unittest.mock import patch

from coreason_runner.ports import find_free_port, is_port_free


def test_is_port_free_detects_bound_port() -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen()
        port = sock.getsockname()[1]
        assert not is_port_free(port)


def test_find_free_port_skips_taken_ports() -> None:
    with patch("coreason_runner.ports.is_port_free", side_effect=[False, False, True]):
        assert find_free_port(4000) == 4002


def test_find_free_port_falls_back_to_ephemeral() -> None:
    with patch("coreason_runner.ports.is_port_free", return_value=False):
        port = find_free_port(4000, attempts=3)
    assert port > 0
    assert port not in (4000, 4001, 4002)
