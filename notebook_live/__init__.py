"""
notebook-live: render notebook documents and re-run their code cells.

This package provides:
- A document model for .ipynb files (notebook, worksheets, cells, outputs)
- HTML rendering with display-priority format resolution
- Re-execution of code cells in an isolated, per-session sandbox
"""

from notebook_live.config import NotebookConfig
from notebook_live.hooks import Hooks
from notebook_live.notebook import Notebook, Worksheet, Cell, CellType, Input, Output, RunControl, RunState, parse
from notebook_live.coalesce import coalesce_streams
from notebook_live.display import DisplayRegistry
from notebook_live.kernel import ExecutionEngine, ExecutionResult, rewrite_imports
from notebook_live.session import NotebookSession

__version__ = "0.1.0"
__all__ = [
    "NotebookConfig",
    "Hooks",
    "Notebook",
    "Worksheet",
    "Cell",
    "CellType",
    "Input",
    "Output",
    "RunControl",
    "RunState",
    "parse",
    "coalesce_streams",
    "DisplayRegistry",
    "ExecutionEngine",
    "ExecutionResult",
    "rewrite_imports",
    "NotebookSession",
]
