"""
Tests for import rewriting and the ExecutionEngine.
"""

import asyncio

import pytest

from notebook_live.kernel import ExecutionResult, rewrite_imports
from notebook_live.notebook import RunState

from conftest import code_cell, make_document


class TestRewriteImports:
    """Test cases for rewrite_imports."""

    def test_named_imports(self):
        assert rewrite_imports('import { a, b as c } from "pkg"') == "a, c = __dependencies__.pull('pkg', 'a', 'b')"

    def test_single_named_import(self):
        assert rewrite_imports("import { a } from 'pkg'") == "a, = __dependencies__.pull('pkg', 'a')"

    def test_namespace_import(self):
        assert rewrite_imports('import * as ns from "pkg"') == "ns = __dependencies__['pkg']"

    def test_default_import(self):
        assert rewrite_imports('import lib from "@scope/lib"') == "lib = __dependencies__['@scope/lib']"

    def test_python_style_from_import(self):
        assert rewrite_imports('from "pkg" import a, b as c') == "a, c = __dependencies__.pull('pkg', 'a', 'b')"

    def test_indentation_is_kept(self):
        source = 'if True:\n    import { a } from "pkg"'
        assert rewrite_imports(source) == "if True:\n    a, = __dependencies__.pull('pkg', 'a')"

    def test_plain_python_imports_untouched(self):
        source = "import math\nfrom os import path\nimport json as j"
        assert rewrite_imports(source) == source

    def test_other_lines_untouched(self):
        source = 'x = 1\nimport { a } from "pkg"\ny = a'
        assert rewrite_imports(source).splitlines()[::2] == ["x = 1", "y = a"]


class TestExecutionEngine:
    """Test cases for executing cells through a session."""

    def load(self, session, *sources):
        notebook = session.load(make_document(*(code_cell(s) for s in sources)))
        session.render(notebook)
        return list(notebook.code_cells())

    def run(self, session, cell):
        return asyncio.run(session.execute(cell))

    def test_success_shows_logs_and_timing(self, session):
        """Test a successful run shows logs, timing and the success glyph."""
        [cell] = self.load(session, "print(1 + 1)")

        result = self.run(session, cell)
        region = cell.outputs[0]

        assert result.success
        assert region.name == "stdout"
        assert region.text.startswith("2\nTook ")
        assert region.text.endswith(" ms")
        assert '<span style="width:100%;display:inline-block">2</span>' in region.html
        assert cell.input.run_control.state == RunState.SUCCEEDED
        assert cell.input.run_control.glyph == "✓"
        assert cell.input.run_control.busy is False

    def test_return_value_is_shown(self, session):
        """Test the trailing expression value is displayed."""
        [cell] = self.load(session, "[1, 2]")

        result = self.run(session, cell)

        assert result.return_value == [1, 2]
        assert cell.outputs[0].text.startswith("[1, 2]\nTook ")

    def test_nothing_to_show_is_timing_only(self, session):
        """Test a silent cell only shows the timing line."""
        [cell] = self.load(session, "x = 1")

        self.run(session, cell)

        assert cell.outputs[0].text.startswith("Took ")
        assert cell.outputs[0].html.startswith("Took ")

    def test_error_is_shown_not_raised(self, session):
        """Test errors are written to the cell instead of raised."""
        [cell] = self.load(session, "raise ValueError('boom')")

        result = self.run(session, cell)
        region = cell.outputs[0]

        assert not result.success
        assert result.error == "boom"
        assert region.name == "stderr"
        assert region.text.startswith("boom\nTook ")
        assert cell.input.run_control.state == RunState.FAILED
        assert cell.input.run_control.glyph == "x"

    def test_error_without_message_uses_type_name(self, session):
        """Test an exception without a message falls back to its type name."""
        [cell] = self.load(session, "raise RuntimeError")

        result = self.run(session, cell)

        assert result.error == "RuntimeError"

    def test_syntax_error_is_contained(self, session):
        """Test syntax errors fail the cell."""
        [cell] = self.load(session, "def (")

        result = self.run(session, cell)

        assert not result.success
        assert cell.outputs[0].name == "stderr"

    def test_system_exit_is_contained(self, session):
        """Test SystemExit fails the cell without exiting."""
        [cell] = self.load(session, "raise SystemExit(3)")

        result = self.run(session, cell)

        assert not result.success
        assert result.error == "3"

    def test_counter_increments_even_on_error(self, session):
        """Test the prompt counter advances for failed runs too."""
        first, second = self.load(session, "1 / 0", "2")

        self.run(session, first)
        self.run(session, second)

        assert first.number == 1
        assert second.number == 2
        assert session.prompt_number == 2

    def test_input_and_output_carry_the_same_number(self, session):
        """Test the new number is stamped on cell, input and output."""
        [cell] = self.load(session, "1")

        result = self.run(session, cell)

        assert result.execution_count == 1
        assert cell.number == 1
        assert cell.input.prompt_number == 1
        assert cell.outputs[0].prompt_number == 1

    def test_rerun_gets_a_new_number(self, session):
        """Test running a cell again takes the next number."""
        [cell] = self.load(session, "1")

        self.run(session, cell)
        self.run(session, cell)

        assert cell.number == 2

    def test_log_buffer_is_cleared(self, session):
        """Test logs from one run never leak into the next."""
        first, second = self.load(session, "print('only once')", "pass")

        self.run(session, first)
        self.run(session, second)

        assert session.sandbox.logs == []
        assert "only once" not in second.outputs[0].text

    def test_cells_share_state(self, session):
        """Test that variables persist across cells."""
        first, second = self.load(session, "shared = 20", "shared + 1")

        self.run(session, first)
        result = self.run(session, second)

        assert result.return_value == 21

    def test_log_entries_are_escaped(self, session):
        """Test log entries are HTML-escaped."""
        [cell] = self.load(session, "print('<b>')")

        self.run(session, cell)

        assert "&lt;b&gt;" in cell.outputs[0].html
        assert "<b>" not in cell.outputs[0].html

    def test_imports_from_registered_dependency(self, session):
        """Test importing a member of a registered dependency."""
        session.update_dependencies({"math-lib": {"double": lambda x: x * 2}})
        [cell] = self.load(session, 'import { double as twice } from "math-lib"\ntwice(4)')

        result = self.run(session, cell)

        assert result.return_value == 8

    def test_missing_dependency_fails_the_cell(self, session):
        """Test importing an unregistered dependency fails the cell."""
        [cell] = self.load(session, 'import { a } from "nowhere"')

        result = self.run(session, cell)

        assert not result.success
        assert "nowhere" in result.error

    def test_non_code_cell_is_rejected(self, session):
        """Test only code cells can be executed."""
        notebook = session.load(make_document({"cell_type": "markdown", "source": "m"}))
        with pytest.raises(ValueError):
            self.run(session, notebook.sheet.cells[0])

    def test_result_to_dict(self):
        """Test ExecutionResult serialization."""
        result = ExecutionResult(success=True, execution_count=3, return_value=[1])
        data = result.to_dict()

        assert data["success"] is True
        assert data["execution_count"] == 3
        assert data["return_value"] == "[1]"
