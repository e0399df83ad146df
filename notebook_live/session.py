"""
NotebookSession: everything one displayed document shares.

The prompt counter, run handlers, sandbox and dependency registry live
here rather than in module globals, so several documents can be loaded
side by side without seeing each other's state.
"""

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx

from notebook_live.config import NotebookConfig
from notebook_live.display import DisplayRegistry
from notebook_live.hooks import Hooks
from notebook_live.kernel import ExecutionEngine, ExecutionResult
from notebook_live.notebook import Cell, Notebook, parse
from notebook_live.render import Node, Renderer
from notebook_live.sandbox import Sandbox


logger = logging.getLogger(__name__)

RunHandler = Callable[[], Awaitable[ExecutionResult]]


class NotebookSession:
    """
    Per-document session.

    Typical use::

        session = NotebookSession()
        notebook = session.load(raw_document)
        html = session.render(notebook)
        await session.run_all()
    """

    def __init__(self, config: Optional[NotebookConfig] = None, hooks: Optional[Hooks] = None):
        self.config = config or NotebookConfig()
        self.hooks = hooks or Hooks()
        self.display = DisplayRegistry(self.config, self.hooks)
        self.sandbox = Sandbox(self.hooks)
        self.engine = ExecutionEngine(self)
        self.renderer = Renderer(self)
        self.prompt_number = 0
        self.run_codes: list[RunHandler] = []
        self.notebook: Optional[Notebook] = None

    def parse(self, raw: Any) -> Notebook:
        """Parse a raw document with this session's config."""
        return parse(raw, self.config)

    def load(self, raw: Any) -> Notebook:
        """Forget previously registered handlers and parse ``raw``."""
        self.reset_handlers()
        self.notebook = self.parse(raw)
        return self.notebook

    def reset_handlers(self):
        self.run_codes.clear()

    def render(self, node: Node) -> str:
        """Render a notebook entity, registering run handlers for code cells."""
        return self.renderer.render(node)

    async def execute(self, cell: Cell) -> ExecutionResult:
        """Execute one code cell."""
        return await self.engine.execute(cell)

    async def run_all(self) -> list[ExecutionResult]:
        """
        Run every registered handler in document order.

        Each run finishes before the next starts, so later cells see what
        earlier cells defined.
        """
        results = []
        for run in list(self.run_codes):
            results.append(await run())
        return results

    def update_dependencies(self, dependencies: Mapping[str, Any]):
        """Make ``dependencies`` importable from cells, keyed by specifier."""
        self.sandbox.update_dependencies(dependencies)

    async def fetch(self, identifier: str, client: Optional[httpx.AsyncClient] = None) -> Notebook:
        """
        Fetch ``<base_url>/<namespace>/<identifier>.ipynb`` and parse it.

        Run handlers from a previously displayed document are dropped first.
        HTTP and decoding errors propagate to the caller.

        Args:
            identifier: Notebook identifier
            client: Optional client to reuse

        Returns:
            The parsed notebook
        """
        self.reset_handlers()
        url = self.config.notebook_url(identifier)
        logger.info("Fetching notebook %s", url)
        if client is None:
            async with httpx.AsyncClient(timeout=self.config.fetch_timeout) as own_client:
                response = await own_client.get(url)
        else:
            response = await client.get(url)
        response.raise_for_status()
        self.notebook = self.parse(response.json())
        return self.notebook
