# src/coreason_runner/strategies/__init__.py

"""
Execution strategies, one per project-kind family.
"""

from .script import NodeScriptStrategy, PythonScriptStrategy
from .server import DevServerStrategy, FrameworkServerStrategy
from .static import StaticSiteStrategy

__all__ = [
    "DevServerStrategy",
    "FrameworkServerStrategy",
    "NodeScriptStrategy",
    "PythonScriptStrategy",
    "StaticSiteStrategy",
]
