"""
DisplayRegistry: format identifier -> renderer, resolved by display priority.
"""

import logging
from typing import Any, Callable, Mapping, Optional

from notebook_live.config import DEFAULT_DISPLAY_PRIORITY, NotebookConfig
from notebook_live.hooks import Hooks
from notebook_live.utils import class_names, element, join_text


logger = logging.getLogger(__name__)

FormatRenderer = Callable[[Any], str]

JAVASCRIPT_DISABLED = "JavaScript execution is disabled for this notebook"

__all__ = ["DEFAULT_DISPLAY_PRIORITY", "DisplayRegistry", "FormatRenderer", "JAVASCRIPT_DISABLED"]


class DisplayRegistry:
    """
    Open mapping from format identifier (``"text/html"``, ``"png"``, ...) to
    a renderer producing HTML.

    ``resolve()`` walks ``display_priority`` and renders the first format
    that is both present in the payload and registered. Hosts may register
    extra formats or reorder the priority list at startup.
    """

    def __init__(self, config: Optional[NotebookConfig] = None, hooks: Optional[Hooks] = None):
        self.config = config or NotebookConfig()
        self.hooks = hooks or Hooks()
        self.renderers: dict[str, FormatRenderer] = {}
        self._register_builtins()

    @property
    def display_priority(self) -> list[str]:
        return self.config.display_priority

    def _make(self, tag: str, classes: list[str], body: str = "", **attrs) -> str:
        return element(tag, body, class_=class_names(self.config.prefix, classes) or None, **attrs)

    def _register_builtins(self):
        self.register(self.render_text, "text", "text/plain")
        self.register(self.render_html, "html", "text/html")
        self.register(self.render_markdown, "marked", "markdown", "text/markdown")
        self.register(self.render_svg, "svg", "text/svg+xml", "image/svg+xml")
        self.register(self.render_latex, "latex", "text/latex")
        self.register(self.render_javascript, "javascript", "application/javascript")
        for image_format in ("png", "jpeg", "gif"):
            self.register(self._image_renderer(image_format), image_format, f"image/{image_format}")

    def register(self, renderer: FormatRenderer, *formats: str):
        """Register ``renderer`` under each of ``formats``."""
        for fmt in formats:
            self.renderers[fmt] = renderer

    def unregister(self, fmt: str):
        self.renderers.pop(fmt, None)

    def resolve_format(self, payload: Mapping[str, Any]) -> Optional[str]:
        """First format in priority order that is available and renderable."""
        for fmt in self.display_priority:
            if payload.get(fmt) and fmt in self.renderers:
                return fmt
        return None

    def resolve(self, payload: Mapping[str, Any]) -> str:
        """
        Render the highest-priority format available in ``payload``.

        Args:
            payload: Mapping of format identifier to content

        Returns:
            HTML for the chosen format, or an empty placeholder
        """
        fmt = self.resolve_format(payload)
        if fmt is None:
            logger.debug("No renderable format among %s", sorted(payload))
            return self.empty()
        return self.renderers[fmt](payload[fmt])

    def empty(self) -> str:
        return self._make("div", ["empty-output"])

    # ------------------------------------------------------------------ #
    # Built-in renderers
    # ------------------------------------------------------------------ #

    def render_text(self, text) -> str:
        html = self.hooks.ansi(join_text(text))
        return self._make("pre", ["text-output"], self.hooks.highlighter(html, "text-output"))

    def render_html(self, html) -> str:
        return self._make("div", ["html-output"], self.hooks.sanitizer(join_text(html)))

    def render_markdown(self, md) -> str:
        return self.render_html(self.hooks.markdown(join_text(md)))

    def render_svg(self, svg) -> str:
        return self._make("div", ["svg-output"], join_text(svg))

    def render_latex(self, latex) -> str:
        return self._make("div", ["latex-output"], join_text(latex))

    def render_javascript(self, js) -> str:
        if self.config.execute_javascript:
            return self._make("script", [], join_text(js))
        return element("pre", JAVASCRIPT_DISABLED)

    def _image_renderer(self, image_format: str) -> FormatRenderer:
        def render_image(data) -> str:
            encoded = join_text(data).replace("\n", "")
            return self._make("img", ["image-output"], src=f"data:image/{image_format};base64,{encoded}")
        return render_image
