from .interface import Adapter, Frame
from .sim import SimAdapter
from .python_can_adapter import PythonCanAdapter
from .socketcan import SocketCanAdapter

__all__ = ["Adapter", "Frame", "SimAdapter", "PythonCanAdapter", "SocketCanAdapter"]
