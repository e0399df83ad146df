"""
Notebook: the document model built from a parsed .ipynb document.

Notebook -> Worksheet(s) -> Cell(s) -> Input / Output(s). The tree is built
once; execution only changes outputs, prompt numbers and run controls.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterator, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from notebook_live.coalesce import coalesce_streams
from notebook_live.config import NotebookConfig
from notebook_live.utils import is_count, join_text


logger = logging.getLogger(__name__)


class CellType(str, Enum):
    """Type of notebook cell."""
    MARKDOWN = "markdown"
    HEADING = "heading"
    RAW = "raw"
    CODE = "code"


class RunState(str, Enum):
    """State of a code cell's run control."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


GLYPHS = {
    RunState.IDLE: " ❯ ",
    RunState.RUNNING: "",
    RunState.SUCCEEDED: "✓",
    RunState.FAILED: "x",
}

DISPLAY_OUTPUT_TYPES = ("display_data", "execute_result", "pyout")
ERROR_OUTPUT_TYPES = ("error", "pyerr")


@dataclass
class RunControl:
    """The run button of a code cell and the handler bound to it."""

    state: RunState = RunState.IDLE
    busy: bool = False
    handler: Optional[Callable[[], Awaitable[Any]]] = None
    position: Optional[int] = None

    @property
    def glyph(self) -> str:
        return GLYPHS[self.state]

    def start(self):
        self.state = RunState.RUNNING
        self.busy = True

    def finish(self, succeeded: bool):
        self.state = RunState.SUCCEEDED if succeeded else RunState.FAILED

    def release(self):
        self.busy = False


class Output(BaseModel):
    """
    A captured output of a code cell, keyed by ``output_type``.

    Legacy (v3) display outputs keep their formats at the top level, so
    unknown keys are preserved and surfaced through ``formats()``.
    """

    model_config = ConfigDict(extra="allow")

    output_type: str = ""
    name: Optional[str] = None
    stream: Optional[str] = None
    text: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    traceback: list[str] = Field(default_factory=list)
    ename: Optional[str] = None
    evalue: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    execution_count: Optional[int] = None

    _cell: Any = PrivateAttr(default=None)
    _prompt_number: Optional[int] = PrivateAttr(default=None)
    _html: Optional[str] = PrivateAttr(default=None)

    @field_validator("output_type", mode="before")
    @classmethod
    def _type_string(cls, value):
        return value if isinstance(value, str) else ""

    @field_validator("name", "stream", "ename", "evalue", mode="before")
    @classmethod
    def _optional_string(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("text", mode="before")
    @classmethod
    def _join_text(cls, value):
        return None if value is None else join_text(value)

    @field_validator("traceback", mode="before")
    @classmethod
    def _traceback_lines(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return value.splitlines()
        if not isinstance(value, (list, tuple)):
            return []
        return [join_text(line) for line in value]

    @field_validator("data", mode="before")
    @classmethod
    def _data_dict(cls, value):
        return value if isinstance(value, dict) else None

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_dict(cls, value):
        return value if isinstance(value, dict) else {}

    @field_validator("execution_count", mode="before")
    @classmethod
    def _count_or_none(cls, value):
        return value if is_count(value) else None

    @property
    def cell(self) -> Optional["Cell"]:
        return self._cell

    @property
    def prompt_number(self) -> Optional[int]:
        """Prompt number shown on this output's holder."""
        return self._prompt_number

    def stamp(self, number: Optional[int]):
        self._prompt_number = number

    @property
    def html(self) -> Optional[str]:
        """Region content written by the last execution, if any."""
        return self._html

    @property
    def is_display(self) -> bool:
        return self.output_type in DISPLAY_OUTPUT_TYPES

    @property
    def is_error(self) -> bool:
        return self.output_type in ERROR_OUTPUT_TYPES

    def formats(self) -> dict[str, Any]:
        """Mapping of format identifier to payload for display outputs."""
        if self.data is not None:
            return self.data
        payload = dict(self.model_extra or {})
        if self.text is not None:
            payload.setdefault("text", self.text)
        return payload

    def show(self, name: str, text: str, html: str):
        """Replace this output with captured execution output."""
        self.output_type = "stream"
        self.name = name
        self.text = text
        self._html = html

    @classmethod
    def empty_stream(cls) -> "Output":
        """The placeholder output given to code cells without outputs."""
        return cls(output_type="stream", name="stdout", text="")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Output":
        """Create from a raw output mapping."""
        return cls.model_validate(dict(data))


class Input(BaseModel):
    """The source of a code cell together with its run control."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    source: str = ""
    prompt_number: Optional[int] = None
    run_control: RunControl = Field(default_factory=RunControl)

    _cell: Any = PrivateAttr(default=None)

    @property
    def cell(self) -> Optional["Cell"]:
        return self._cell


def _prompt_number(data: Mapping[str, Any]) -> Optional[int]:
    number = data.get("prompt_number")
    if is_count(number) and number > -1:
        return number
    count = data.get("execution_count")
    return count if is_count(count) else None


def _heading_level(value: Any) -> int:
    try:
        level = int(value)
    except (TypeError, ValueError):
        return 1
    return min(max(level, 1), 6)


class Cell(BaseModel):
    """A single notebook cell (markdown, heading, raw or code)."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    cell_type: str = CellType.RAW.value
    source: str = ""
    level: int = 1
    language: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    number: Optional[int] = None
    input: Optional[Input] = None
    outputs: list[Output] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    _worksheet: Any = PrivateAttr(default=None)

    @property
    def worksheet(self) -> Optional["Worksheet"]:
        return self._worksheet

    @property
    def notebook(self) -> Optional["Notebook"]:
        return self._worksheet.notebook if self._worksheet is not None else None

    @property
    def is_code(self) -> bool:
        return self.cell_type == CellType.CODE.value

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], worksheet: Optional["Worksheet"] = None) -> "Cell":
        """
        Create a cell from its raw mapping.

        Code cells get an Input and at least one Output; stream outputs
        are coalesced before they are attached.
        """
        cell_type = str(data.get("cell_type") or CellType.RAW.value)
        metadata = data.get("metadata")
        cell = cls(
            cell_type=cell_type,
            source=join_text(data.get("source")),
            level=_heading_level(data.get("level", 1)),
            language=data.get("language") if isinstance(data.get("language"), str) else None,
            metadata=metadata if isinstance(metadata, dict) else {},
            raw=dict(data),
        )
        cell._worksheet = worksheet

        if cell.is_code:
            cell.number = _prompt_number(data)
            source = data["input"] if data.get("input") else data.get("source")
            cell.input = Input(source=join_text(source), prompt_number=cell.number)
            cell.input._cell = cell

            raw_outputs = [o for o in data.get("outputs") or [] if isinstance(o, Mapping)]
            outputs = [Output.from_dict(o) for o in raw_outputs] or [Output.empty_stream()]
            cell.outputs = coalesce_streams(outputs)
            for output in cell.outputs:
                output._cell = cell
                output.stamp(cell.number)
        elif cell_type not in {t.value for t in CellType}:
            logger.warning("Unknown cell type %r, rendering as raw text", cell_type)

        return cell


class Worksheet(BaseModel):
    """An ordered group of cells belonging to one notebook."""

    cells: list[Cell] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    _notebook: Any = PrivateAttr(default=None)

    @property
    def notebook(self) -> Optional["Notebook"]:
        return self._notebook

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], notebook: Optional["Notebook"] = None) -> "Worksheet":
        """Create a worksheet and its cells from a raw mapping."""
        worksheet = cls(raw=dict(data))
        worksheet._notebook = notebook
        raw_cells = data.get("cells") or []
        for raw_cell in raw_cells:
            if not isinstance(raw_cell, Mapping):
                logger.warning("Skipping malformed cell: %r", raw_cell)
                continue
            worksheet.cells.append(Cell.from_dict(raw_cell, worksheet))
        return worksheet


class Notebook(BaseModel):
    """
    A parsed notebook document.

    A notebook contains:
    - Metadata (title, language, kernel spec)
    - One or more worksheets; a flat ``cells`` list becomes one worksheet
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    config: NotebookConfig = Field(default_factory=NotebookConfig)
    metadata: dict[str, Any] = Field(default_factory=dict)
    title: Optional[str] = None
    worksheets: list[Worksheet] = Field(default_factory=list)

    @property
    def sheet(self) -> Worksheet:
        """The first worksheet."""
        return self.worksheets[0]

    @property
    def language(self) -> Optional[str]:
        """Language declared by the notebook metadata, if any."""
        meta = self.metadata
        kernelspec = meta.get("kernelspec") if isinstance(meta.get("kernelspec"), dict) else {}
        language_info = meta.get("language_info") if isinstance(meta.get("language_info"), dict) else {}
        candidates = (meta.get("language"), kernelspec.get("language"), language_info.get("name"))
        return next((c for c in candidates if c and isinstance(c, str)), None)

    def cells(self) -> Iterator[Cell]:
        """All cells in document order."""
        for worksheet in self.worksheets:
            yield from worksheet.cells

    def code_cells(self) -> Iterator[Cell]:
        """Code cells in document order."""
        return (cell for cell in self.cells() if cell.is_code)

    @classmethod
    def from_dict(cls, raw: Any, config: Optional[NotebookConfig] = None) -> "Notebook":
        """
        Build the notebook tree from a parsed JSON document.

        Args:
            raw: Parsed document
            config: Session configuration

        Returns:
            Notebook with at least one worksheet
        """
        if not isinstance(raw, Mapping):
            logger.warning("Notebook document is not an object, using an empty notebook")
            raw = {}
        meta = raw.get("metadata")
        meta = meta if isinstance(meta, dict) else {}
        titles = [meta.get("title"), meta.get("name")]
        notebook = cls(
            raw=dict(raw),
            config=config or NotebookConfig(),
            metadata=meta,
            title=next((t for t in titles if t and isinstance(t, str)), None),
        )

        raw_worksheets = raw.get("worksheets")
        if not raw_worksheets:
            raw_worksheets = [{"cells": raw.get("cells") or []}]
        for raw_worksheet in raw_worksheets:
            if not isinstance(raw_worksheet, Mapping):
                raw_worksheet = {}
            notebook.worksheets.append(Worksheet.from_dict(raw_worksheet, notebook))

        logger.debug(
            "Parsed notebook %r: %d worksheet(s), %d cell(s)",
            notebook.title, len(notebook.worksheets), sum(1 for _ in notebook.cells()),
        )
        return notebook

    @classmethod
    def from_json(cls, text: str, config: Optional[NotebookConfig] = None) -> "Notebook":
        """Parse a JSON string into a notebook."""
        return cls.from_dict(json.loads(text), config)

    @classmethod
    def load(cls, path: Path, config: Optional[NotebookConfig] = None) -> "Notebook":
        """
        Load a notebook from an .ipynb file.

        Args:
            path: Path to load from
            config: Session configuration

        Returns:
            Loaded notebook
        """
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data, config)


def parse(raw: Any, config: Optional[NotebookConfig] = None) -> Notebook:
    """Parse a raw document into the notebook tree."""
    return Notebook.from_dict(raw, config)
