"""
Renderer: turns the notebook tree into HTML and wires up run handlers.
"""

import functools
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from notebook_live.notebook import Cell, Input, Notebook, Output, Worksheet
from notebook_live.utils import class_names, element, escape_html

if TYPE_CHECKING:
    from notebook_live.session import NotebookSession


logger = logging.getLogger(__name__)

Node = Union[Notebook, Worksheet, Cell, Input, Output]

TEMPLATES_DIR = Path(__file__).parent / "templates"

_templates = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)


class Renderer:
    """
    Renders notebook entities to HTML for one session.

    Rendering a code cell registers a run handler bound to that cell on
    its run control and appends it to the session's ``run_codes``.
    """

    def __init__(self, session: "NotebookSession"):
        self.session = session
        self.cell_renderers: dict[str, Callable[[Cell], str]] = {
            "markdown": self.render_markdown_cell,
            "heading": self.render_heading_cell,
            "raw": self.render_raw_cell,
            "code": self.render_code_cell,
        }
        self.output_renderers: dict[str, Callable[[Output], str]] = {
            "display_data": self.render_display_data,
            "execute_result": self.render_display_data,
            "pyout": self.render_display_data,
            "error": self.render_error,
            "pyerr": self.render_error,
            "stream": self.render_stream,
        }

    @property
    def config(self):
        return self.session.config

    @property
    def hooks(self):
        return self.session.hooks

    def _make(self, tag: str, classes: list[str], body: str = "", **attrs: Any) -> str:
        return element(tag, body, class_=class_names(self.config.prefix, classes) or None, **attrs)

    def render(self, node: Node) -> str:
        """Render any notebook entity to HTML."""
        if isinstance(node, Notebook):
            return self.render_notebook(node)
        if isinstance(node, Worksheet):
            return self.render_worksheet(node)
        if isinstance(node, Cell):
            return self.render_cell(node)
        if isinstance(node, Input):
            return self.render_input(node)
        if isinstance(node, Output):
            return self.render_output(node)
        raise TypeError(f"Cannot render {type(node).__name__}")

    def render_notebook(self, notebook: Notebook) -> str:
        body = "".join(self.render_worksheet(w) for w in notebook.worksheets)
        return self._make("div", ["notebook"], body)

    def render_worksheet(self, worksheet: Worksheet) -> str:
        body = "".join(self.render_cell(c) for c in worksheet.cells)
        return self._make("div", ["worksheet"], body)

    # ------------------------------------------------------------------ #
    # Cells
    # ------------------------------------------------------------------ #

    def render_cell(self, cell: Cell) -> str:
        renderer = self.cell_renderers.get(cell.cell_type)
        if renderer is None:
            logger.warning("No renderer for cell type %r, rendering as raw", cell.cell_type)
            renderer = self.render_raw_cell
        return renderer(cell)

    def render_markdown_cell(self, cell: Cell) -> str:
        html = self.hooks.sanitizer(self.hooks.markdown(cell.source))
        return self._make("div", ["cell", "markdown-cell"], html)

    def render_heading_cell(self, cell: Cell) -> str:
        return self._make(f"h{cell.level}", ["cell", "heading-cell"], self.hooks.sanitizer(cell.source))

    def render_raw_cell(self, cell: Cell) -> str:
        return self._make("div", ["cell", "raw-cell"], escape_html(cell.source))

    def render_code_cell(self, cell: Cell) -> str:
        position = self.register(cell)
        body = self.render_input(cell.input)
        body += "".join(self.render_output(o) for o in cell.outputs)
        return self._make("div", ["cell", "code-cell"], body, data_run=position)

    def register(self, cell: Cell) -> int:
        """
        Bind a run handler to ``cell`` and append it to the session.

        A cell whose handler is already registered keeps its position.
        """
        control = cell.input.run_control
        run_codes = self.session.run_codes
        position = control.position
        if position is not None and position < len(run_codes) and run_codes[position] is control.handler:
            return position

        handler = functools.partial(self.session.execute, cell)
        position = len(run_codes)
        control.handler = handler
        control.position = position
        run_codes.append(handler)
        return position

    # ------------------------------------------------------------------ #
    # Inputs
    # ------------------------------------------------------------------ #

    def _language(self, cell: Optional[Cell]) -> str:
        notebook = cell.notebook if cell is not None else None
        return (
            (cell.language if cell is not None else None)
            or (notebook.language if notebook is not None else None)
            or self.config.default_language
        )

    def render_input(self, input: Input) -> str:
        number = input.prompt_number
        if number is not None and number > self.session.prompt_number:
            self.session.prompt_number = number

        lang = self._language(input.cell)
        control = input.run_control
        button = element(
            "button",
            escape_html(control.glyph),
            class_="run-cell" + (" loading" if control.busy else ""),
            data_run=control.position,
            data_state=control.state.value,
        )
        code = element(
            "code",
            escape_html(input.source),
            class_=f"language-{lang}",
            data_language=lang,
        )
        pre = element("pre", code, class_=f"language-{lang}")
        return self._make("div", ["input"], button + pre, data_prompt_number=number)

    # ------------------------------------------------------------------ #
    # Outputs
    # ------------------------------------------------------------------ #

    def render_output(self, output: Output) -> str:
        if output.html is not None:
            inner = self._make("pre", [output.name or "stdout"], output.html)
        else:
            renderer = self.output_renderers.get(output.output_type)
            if renderer is None:
                logger.warning("No renderer for output type %r", output.output_type)
                inner = self.session.display.empty()
            else:
                inner = renderer(output)
        return self._make("div", ["output"], inner, data_prompt_number=output.prompt_number)

    def render_display_data(self, output: Output) -> str:
        return self.session.display.resolve(output.formats())

    def render_error(self, output: Output) -> str:
        raw = "\n".join(output.traceback)
        if not raw and output.ename:
            raw = f"{output.ename}: {output.evalue or ''}"
        return self._make("pre", ["pyerr"], self.hooks.highlighter(self.hooks.ansi(raw), "pyerr"))

    def render_stream(self, output: Output) -> str:
        stream = output.stream or output.name or "stdout"
        html = self.hooks.ansi(output.text or "")
        return self._make("pre", [stream], self.hooks.highlighter(html, stream))


def render_page(session: "NotebookSession", notebook: Notebook, interactive: bool = True) -> str:
    """
    Render a complete HTML page for ``notebook``.

    Args:
        session: Session that owns the notebook
        notebook: Notebook to render
        interactive: Include the script that wires run buttons to the web API

    Returns:
        HTML document
    """
    body = session.render(notebook)
    template = _templates.get_template("notebook.html")
    return template.render(
        title=notebook.title or "Notebook",
        body=Markup(body),
        prefix=session.config.prefix,
        interactive=interactive,
    )
