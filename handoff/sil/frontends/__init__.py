"""
Language frontends for handoff SIL.

Each frontend translates source code into a SIL Program.
"""

from handoff.sil.frontends.python_frontend import PythonFrontend, TREE_SITTER_AVAILABLE

__all__ = ["PythonFrontend", "TREE_SITTER_AVAILABLE"]
