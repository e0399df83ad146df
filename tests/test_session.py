"""
Tests for NotebookSession.
"""

import asyncio
import json

import httpx
import pytest

from notebook_live import NotebookConfig, NotebookSession

from conftest import code_cell, make_document


class TestRunAll:
    """Test cases for running every registered cell."""

    def test_runs_in_document_order(self, session):
        notebook = session.load(make_document(code_cell("a = 1"), code_cell("b = a + 1"), code_cell("b * 10")))
        session.render(notebook)

        results = asyncio.run(session.run_all())

        assert [r.success for r in results] == [True, True, True]
        assert results[2].return_value == 20
        assert [r.execution_count for r in results] == [1, 2, 3]

    def test_each_run_completes_before_the_next(self, session):
        events = []

        async def track(label):
            events.append(f"start {label}")
            await asyncio.sleep(0)
            events.append(f"end {label}")

        session.update_dependencies({"track": {"track": track}})
        notebook = session.load(make_document(
            code_cell('import { track } from "track"\nawait track("one")'),
            code_cell('import { track } from "track"\nawait track("two")'),
        ))
        session.render(notebook)

        asyncio.run(session.run_all())

        assert events == ["start one", "end one", "start two", "end two"]

    def test_failure_does_not_stop_later_cells(self, session):
        notebook = session.load(make_document(code_cell("1 / 0"), code_cell("'after'")))
        session.render(notebook)

        results = asyncio.run(session.run_all())

        assert [r.success for r in results] == [False, True]

    def test_nothing_registered(self, session):
        assert asyncio.run(session.run_all()) == []


class TestHandlers:
    """Run handler bookkeeping."""

    def test_load_resets_handlers(self, session, sample_document):
        session.render(session.load(sample_document))
        assert len(session.run_codes) == 2

        session.load(make_document(code_cell("only")))

        assert session.run_codes == []

    def test_rendering_twice_keeps_one_handler_per_cell(self, session, sample_document):
        notebook = session.load(sample_document)
        first = session.render(notebook)
        second = session.render(notebook)

        assert len(session.run_codes) == 2
        assert first == second

    def test_run_all_after_rerender_runs_each_cell_once(self, session):
        notebook = session.load(make_document(code_cell("1")))
        session.render(notebook)
        session.render(notebook)

        results = asyncio.run(session.run_all())

        assert len(results) == 1

    def test_reset_then_render_registers_again(self, session, sample_document):
        notebook = session.load(sample_document)
        session.render(notebook)
        session.reset_handlers()
        session.render(notebook)

        assert len(session.run_codes) == 2
        assert [h.args[0] for h in session.run_codes] == list(notebook.code_cells())

    def test_sessions_are_independent(self, sample_document):
        first, second = NotebookSession(), NotebookSession()
        first.render(first.load(sample_document))
        first.update_dependencies({"pkg": {}})

        assert second.run_codes == []
        assert second.prompt_number == 0
        assert "pkg" not in second.sandbox.dependencies


class TestDependencies:
    """Test cases for update_dependencies."""

    def test_merge_later_keys_win(self, session):
        session.update_dependencies({"a": 1, "b": 2})
        session.update_dependencies({"b": 3})

        assert dict(session.sandbox.dependencies) == {"a": 1, "b": 3}


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestFetch:
    """Test cases for fetching a notebook over HTTP."""

    def test_fetch_parses_document(self, sample_document):
        session = NotebookSession(NotebookConfig(base_url="http://host/", namespace="books"))
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, content=json.dumps(sample_document))

        async def go():
            async with mock_client(handler) as client:
                return await session.fetch("intro", client=client)

        notebook = asyncio.run(go())

        assert requested == ["http://host/books/intro.ipynb"]
        assert notebook.title == "Sample"
        assert session.notebook is notebook

    def test_fetch_resets_handlers(self, session, sample_document):
        session.render(session.load(sample_document))

        async def go():
            async with mock_client(lambda request: httpx.Response(200, json=make_document())) as client:
                return await session.fetch("other", client=client)

        asyncio.run(go())

        assert session.run_codes == []

    def test_http_error_propagates(self, session):
        async def go():
            async with mock_client(lambda request: httpx.Response(404)) as client:
                return await session.fetch("missing", client=client)

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(go())

    def test_invalid_json_propagates(self, session):
        async def go():
            async with mock_client(lambda request: httpx.Response(200, content=b"{nope")) as client:
                return await session.fetch("broken", client=client)

        with pytest.raises(ValueError):
            asyncio.run(go())
