"""
Configuration for notebook-live.
"""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field


DEFAULT_DISPLAY_PRIORITY = [
    "png",
    "image/png",
    "jpeg",
    "image/jpeg",
    "svg",
    "image/svg+xml",
    "text/svg+xml",
    "html",
    "text/html",
    "text/markdown",
    "latex",
    "text/latex",
    "javascript",
    "application/javascript",
    "text",
    "text/plain",
]

ENV_PREFIX = "NOTEBOOK_LIVE_"


class NotebookConfig(BaseModel):
    """Settings shared by everything rendered and executed in a session."""

    prefix: str = "nb-"
    execute_javascript: bool = True
    display_priority: list[str] = Field(default_factory=lambda: list(DEFAULT_DISPLAY_PRIORITY))
    namespace: str = "nb"
    base_url: str = "http://localhost:7860"
    fetch_timeout: float = 30.0
    default_language: str = "python"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "NotebookConfig":
        """
        Build a config from ``NOTEBOOK_LIVE_*`` environment variables.

        Args:
            environ: Mapping to read instead of os.environ
            **overrides: Values that win over the environment

        Returns:
            The resulting config
        """
        environ = os.environ if environ is None else environ
        values = {}

        execute_js = environ.get(f"{ENV_PREFIX}EXECUTE_JS")
        if execute_js is not None:
            values["execute_javascript"] = execute_js.strip().lower() not in ("0", "false", "no", "off")

        base_url = environ.get(f"{ENV_PREFIX}BASE_URL")
        if base_url:
            values["base_url"] = base_url

        namespace = environ.get(f"{ENV_PREFIX}NAMESPACE")
        if namespace:
            values["namespace"] = namespace.strip("/")

        priority = environ.get(f"{ENV_PREFIX}PRIORITY")
        if priority:
            values["display_priority"] = [p.strip() for p in priority.split(",") if p.strip()]

        values.update(overrides)
        return cls(**values)

    def notebook_url(self, identifier: str) -> str:
        """URL of the raw document for ``identifier``."""
        return f"{self.base_url.rstrip('/')}/{self.namespace}/{identifier}.ipynb"
