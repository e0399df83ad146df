"""
ExecutionEngine: runs code cells in the session sandbox.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from notebook_live.notebook import Cell
from notebook_live.sandbox import DEPENDENCIES_NAME
from notebook_live.utils import escape_html, format_ms

if TYPE_CHECKING:
    from notebook_live.session import NotebookSession


logger = logging.getLogger(__name__)

# import { a, b as c } from "pkg" / import * as ns from "pkg" / import name from "pkg"
_IMPORT_RE = re.compile(
    r"""^([^\S\n]*)import[^\S\n]+(\*[^\S\n]+as[^\S\n]*)?(.*?)[^\S\n]+from[^\S\n]*(["'])([@\w \\/.-]*?)\4""",
    re.MULTILINE,
)
# from "pkg" import a, b as c
_FROM_RE = re.compile(
    r"""^([^\S\n]*)from[^\S\n]+(["'])([@\w \\/.-]*?)\2[^\S\n]+import[^\S\n]+([^\n]+)""",
    re.MULTILINE,
)

_ALIAS_RE = re.compile(r"\s+as\s+")

LOG_SPAN = '<span style="width:100%;display:inline-block">{}</span>'


def _destructure(bindings: str, specifier: str) -> str:
    names = [b.strip() for b in bindings.split(",") if b.strip()]
    if not names:
        return f"{DEPENDENCIES_NAME}[{specifier!r}]"
    members, targets = [], []
    for name in names:
        member, *alias = _ALIAS_RE.split(name, maxsplit=1)
        members.append(member)
        targets.append(alias[0] if alias else member)
    lhs = ", ".join(targets) + ("," if len(targets) == 1 else "")
    args = ", ".join(repr(m) for m in members)
    return f"{lhs} = {DEPENDENCIES_NAME}.pull({specifier!r}, {args})"


def _rewrite_import(match: re.Match) -> str:
    indent, star, bindings, _, specifier = match.groups()
    bindings = bindings.strip()
    if star or not bindings.startswith("{"):
        return f"{indent}{bindings} = {DEPENDENCIES_NAME}[{specifier!r}]"
    return indent + _destructure(bindings.strip("{} \t"), specifier)


def _rewrite_from(match: re.Match) -> str:
    indent, _, specifier, bindings = match.groups()
    return indent + _destructure(bindings.strip().strip("()"), specifier)


def rewrite_imports(source: str) -> str:
    """
    Rewrite dependency imports into lookups in the dependency registry.

    ``import { a, b as c } from "pkg"`` becomes
    ``a, c = __dependencies__.pull('pkg', 'a', 'b')``; namespace and default
    imports bind the whole dependency. Ordinary Python imports are left alone.
    """
    source = _IMPORT_RE.sub(_rewrite_import, source)
    return _FROM_RE.sub(_rewrite_from, source)


@dataclass
class ExecutionResult:
    """Result of executing a code cell."""
    success: bool
    logs: list[str] = field(default_factory=list)
    execution_count: int = 0
    error: Optional[str] = None
    return_value: Any = None
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "logs": self.logs,
            "execution_count": self.execution_count,
            "error": self.error,
            "return_value": str(self.return_value) if self.return_value is not None else None,
            "elapsed_ms": self.elapsed_ms,
        }


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ExecutionEngine:
    """
    Executes code cells against the session sandbox.

    Each run writes into the cell's first output, flips the run control
    through running -> succeeded/failed, and stamps a new prompt number.
    """

    def __init__(self, session: "NotebookSession"):
        self.session = session

    async def execute(self, cell: Cell) -> ExecutionResult:
        """
        Execute a code cell.

        Evaluation errors are shown in the cell and never raised.

        Args:
            cell: Code cell to run

        Returns:
            ExecutionResult describing the run
        """
        if not cell.is_code:
            raise ValueError(f"Only code cells can be executed, got {cell.cell_type!r}")
        session = self.session
        sandbox = session.sandbox
        serialize = session.hooks.serializer
        control = cell.input.run_control
        region = cell.outputs[0]

        code = rewrite_imports(cell.input.source)
        control.start()
        start = time.perf_counter()

        logs: list[str] = []
        return_value = None
        error = None
        region_name = "stdout"
        text = html = ""
        try:
            return_value = await sandbox.evaluate(code, filename=f"<cell-{control.position}>")
            logs = list(sandbox.logs)
            text = "\n".join(logs)
            html = "".join(LOG_SPAN.format(escape_html(entry)) for entry in logs)
            if return_value is not None:
                shown = serialize(return_value)
                text = f"{text}\n{shown}" if text else shown
                html += escape_html(shown)
            control.finish(succeeded=True)
        except (Exception, SystemExit) as exc:
            error = serialize(_error_message(exc))
            region_name = "stderr"
            text = error
            html = escape_html(error)
            control.finish(succeeded=False)
            logger.info("Cell %s failed: %s", control.position, error)
        finally:
            control.release()
            session.prompt_number += 1
            number = session.prompt_number
            cell.number = number
            cell.input.prompt_number = number
            region.stamp(number)
            sandbox.logs.clear()

            elapsed_ms = (time.perf_counter() - start) * 1000
            timing = f"Took {format_ms(elapsed_ms)} ms"
            html += escape_html(serialize(("\n" if html else "") + timing))
            text = f"{text}\n{timing}" if text else timing
            region.show(region_name, text, html)

        logger.info("Cell %s finished in %s ms as [%d]", control.position, format_ms(elapsed_ms), number)
        return ExecutionResult(
            success=error is None,
            logs=logs,
            execution_count=number,
            error=error,
            return_value=return_value,
            elapsed_ms=elapsed_ms,
        )
