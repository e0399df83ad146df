"""Pytest fixtures shared across all test modules."""

import json
from unittest.mock import patch

import pytest

from notebook_live import NotebookConfig, NotebookSession


def make_document(*cells, metadata=None) -> dict:
    """Build a flat (v4-style) notebook document."""
    return {
        "metadata": metadata if metadata is not None else {"title": "Sample", "language": "python"},
        "cells": list(cells),
    }


def code_cell(source, outputs=None, **extra) -> dict:
    cell = {"cell_type": "code", "source": source, "outputs": outputs if outputs is not None else []}
    cell.update(extra)
    return cell


@pytest.fixture
def session():
    """A fresh session with default configuration."""
    return NotebookSession(NotebookConfig())


@pytest.fixture
def sample_document():
    return make_document(
        {"cell_type": "markdown", "source": ["# Title\n", "Some *text*."]},
        code_cell("x = 21", execution_count=1),
        code_cell(
            "print(x * 2)",
            outputs=[
                {"output_type": "stream", "name": "stdout", "text": ["4", "2\n"]},
                {"output_type": "stream", "name": "stdout", "text": "done\n"},
            ],
            execution_count=2,
        ),
        {"cell_type": "raw", "source": "<raw & text>"},
    )


@pytest.fixture
def web_app(tmp_path, sample_document):
    """Flask test app using real launch_web() routes, no route duplication."""
    from flask import Flask
    import notebook_live.web as web_module

    (tmp_path / "sample.ipynb").write_text(json.dumps(sample_document), encoding="utf-8")
    session = NotebookSession(NotebookConfig())
    captured = {}

    def fake_run(self, *a, **kw):
        captured["app"] = self

    with patch.object(Flask, "run", fake_run), \
         patch.object(web_module, "NotebookSession", return_value=session):
        web_module.launch_web(tmp_path, config=NotebookConfig())

    app = captured["app"]
    app.config["TESTING"] = True
    return app.test_client(), session, tmp_path
