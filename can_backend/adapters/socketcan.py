"""SocketCAN adapter using python-can for Linux-like systems.

Thin specialization of :class:`PythonCanAdapter` for machines that expose a
SocketCAN interface (Linux, Raspberry Pi, ``vcan0`` for development).
"""
from __future__ import annotations

import os
from typing import Optional

from .python_can_adapter import PythonCanAdapter


class SocketCanAdapter(PythonCanAdapter):
    def __init__(self, channel: Optional[str] = None) -> None:
        super().__init__(
            channel=channel or os.environ.get("SOCKETCAN_CHANNEL", "can0"),
            interface="socketcan",
        )
