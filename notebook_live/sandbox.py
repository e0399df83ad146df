"""
Sandbox: the isolated namespace code cells run in.

Cells share one sandbox per session. It owns its globals (with a private
builtins copy), the dependency registry cells import from, and the log
buffer that ``print``/``console.log``/``console.table`` write to.
"""

import ast
import builtins
import inspect
import io
import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from IPython.utils.capture import capture_output
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from notebook_live.hooks import Hooks


logger = logging.getLogger(__name__)

COMPILE_FLAGS = ast.PyCF_ALLOW_TOP_LEVEL_AWAIT

DEPENDENCIES_NAME = "__dependencies__"

HOST_PACKAGE = __name__.split(".")[0]


class DependencyError(ImportError):
    """A cell imported a dependency (or member) that was never registered."""


class DependencyRegistry(dict):
    """Values cells can import by specifier, e.g. ``import { a } from "pkg"``."""

    def __getitem__(self, specifier: str) -> Any:
        try:
            return super().__getitem__(specifier)
        except KeyError:
            raise DependencyError(f"No dependency registered for {specifier!r}") from None

    def pull(self, specifier: str, *names: str) -> tuple:
        """Return the named members of a dependency, in order."""
        dependency = self[specifier]
        return tuple(self._member(dependency, specifier, name) for name in names)

    @staticmethod
    def _member(dependency: Any, specifier: str, name: str) -> Any:
        if isinstance(dependency, Mapping):
            if name in dependency:
                return dependency[name]
        elif hasattr(dependency, name):
            return getattr(dependency, name)
        raise DependencyError(f"Dependency {specifier!r} has no member {name!r}")


def _row_keys(row: Any) -> list[str]:
    if isinstance(row, Mapping):
        return [str(k) for k in row.keys()]
    if hasattr(row, "__dict__"):
        return [k for k in vars(row) if not k.startswith("_")]
    return []


def _row_value(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key, "")
    return getattr(row, key, "")


def format_table(rows: Any, serializer=str) -> Optional[str]:
    """
    Render a list of uniform rows as a boxed fixed-width character table.

    Columns are the keys of the first row. Returns None for anything that
    is not a non-empty list of rows.
    """
    if not isinstance(rows, (list, tuple)) or not rows:
        return None
    head = _row_keys(rows[0])
    if not head:
        return None

    table = Table(box=box.SQUARE, show_lines=True, header_style="", pad_edge=True)
    for key in head:
        table.add_column(Text(key))
    for row in rows:
        table.add_row(*(Text(serializer(_row_value(row, key))) for key in head))

    buffer = io.StringIO()
    Console(file=buffer, width=10_000, color_system=None, highlight=False).print(table)
    return buffer.getvalue().rstrip("\n")


class SandboxConsole:
    """The ``console`` object visible to cells."""

    def __init__(self, logs: list[str], hooks: Hooks, flush: Callable[[], None]):
        self._logs = logs
        self._hooks = hooks
        self._flush = flush

    def log(self, *values: Any):
        """Append each value to the log buffer."""
        self._flush()
        self._logs.extend(self._hooks.serializer(value) for value in values)

    def table(self, rows: Any):
        """Append ``rows`` rendered as a character table to the log buffer."""
        self._flush()
        rendered = format_table(rows, self._hooks.serializer)
        if rendered is not None:
            self._logs.append(rendered)


def _guarded_import(name, globals=None, locals=None, fromlist=(), level=0):
    if level == 0 and (name == HOST_PACKAGE or name.startswith(HOST_PACKAGE + ".")):
        raise ImportError(f"{name!r} cannot be imported from a notebook cell")
    return builtins.__import__(name, globals, locals, fromlist, level)


class Sandbox:
    """
    Isolated evaluation context shared by every code cell of a session.

    Cells see only the sandbox globals: ``console``, the dependency registry
    under ``__dependencies__`` and whatever earlier cells defined.
    """

    def __init__(self, hooks: Optional[Hooks] = None):
        self.hooks = hooks or Hooks()
        self.logs: list[str] = []
        self.dependencies = DependencyRegistry()
        self.console = SandboxConsole(self.logs, self.hooks, self._flush)
        self.namespace = self._create_namespace()
        self._captured = None
        self._offsets = {"stdout": 0, "stderr": 0}

    def _create_namespace(self) -> dict[str, Any]:
        sandbox_builtins = dict(vars(builtins))
        sandbox_builtins["print"] = self._print
        sandbox_builtins["__import__"] = _guarded_import
        return {
            "__name__": "__notebook__",
            "__builtins__": sandbox_builtins,
            DEPENDENCIES_NAME: self.dependencies,
            "console": self.console,
        }

    def _print(self, *values, sep=" ", end="\n", file=None, flush=False):
        if file is not None:
            builtins.print(*values, sep=sep, end=end, file=file, flush=flush)
            return
        self._flush()
        sep = " " if sep is None else sep
        self.logs.append(sep.join(self.hooks.serializer(value) for value in values))

    def _flush(self):
        """Move text written straight to stdout/stderr into the log buffer."""
        if self._captured is None:
            return
        for stream in ("stdout", "stderr"):
            text = getattr(self._captured, stream)
            pending = text[self._offsets[stream]:].rstrip("\n")
            self._offsets[stream] = len(text)
            if pending:
                self.logs.append(pending)

    def update_dependencies(self, dependencies: Mapping[str, Any]):
        """Merge ``dependencies`` into the registry; later keys win."""
        self.dependencies.update(dependencies)

    async def _run(self, code) -> Any:
        value = eval(code, self.namespace)
        if code.co_flags & inspect.CO_COROUTINE:
            value = await value
        return value

    async def evaluate(self, source: str, filename: str = "<cell>") -> Any:
        """
        Evaluate ``source`` in the sandbox.

        Top-level ``await`` is allowed. If the last statement is an
        expression, its value is returned; otherwise None. Anything written
        straight to sys.stdout/sys.stderr lands in the log buffer in the
        order it was written relative to ``print`` and ``console`` calls.

        Args:
            source: Python source of the cell
            filename: Name used in tracebacks

        Returns:
            Value of the trailing expression, or None
        """
        tree = ast.parse(source, filename=filename, mode="exec")
        trailing = None
        if tree.body and isinstance(tree.body[-1], ast.Expr):
            trailing = ast.Expression(body=tree.body.pop().value)

        try:
            with capture_output(display=False) as captured:
                self._captured = captured
                self._offsets = {"stdout": 0, "stderr": 0}
                await self._run(compile(tree, filename, "exec", flags=COMPILE_FLAGS))
                result = None
                if trailing is not None:
                    result = await self._run(compile(trailing, filename, "eval", flags=COMPILE_FLAGS))
        finally:
            self._flush()
            self._captured = None
        return result
