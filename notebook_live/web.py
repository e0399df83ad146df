"""
Web viewer for notebook-live using Flask.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from notebook_live import NotebookConfig, NotebookSession
from notebook_live.render import render_page


logger = logging.getLogger(__name__)


def launch_web(
    directory: Path,
    config: Optional[NotebookConfig] = None,
    host: str = "0.0.0.0",
    port: int = 7860,
):
    """
    Launch the Flask viewer for the notebooks in ``directory``.

    Args:
        directory: Directory holding .ipynb files
        config: Session configuration (defaults to the environment)
        host: Interface to bind
        port: Port to listen on
    """
    from flask import Flask, abort, jsonify, request, send_from_directory

    directory = Path(directory).resolve()
    config = config or NotebookConfig.from_env()
    session = NotebookSession(config)

    app = Flask(__name__)

    # ------------------------------------------------------------------ #
    # Helper
    # ------------------------------------------------------------------ #

    def _notebook_path(name: str) -> Path:
        path = (directory / f"{name}.ipynb").resolve()
        if path.parent != directory or not path.is_file():
            abort(404)
        return path

    def _cell_payload(position: int, result) -> dict:
        cell = session.run_codes[position].args[0]
        control = cell.input.run_control
        html = session.renderer.render_input(cell.input)
        html += "".join(session.renderer.render_output(o) for o in cell.outputs)
        return {
            "position": position,
            "html": html,
            "prompt_number": cell.number,
            "state": control.state.value,
            "result": result.to_dict(),
        }

    # ------------------------------------------------------------------ #
    # Routes
    # ------------------------------------------------------------------ #

    @app.route("/")
    def index():
        names = sorted(p.stem for p in directory.glob("*.ipynb"))
        return jsonify({
            "notebooks": [
                {"name": name, "view": f"/view/{name}", "raw": f"/{config.namespace}/{name}.ipynb"}
                for name in names
            ],
        })

    @app.route(f"/{config.namespace}/<name>.ipynb")
    def raw_notebook(name: str):
        path = _notebook_path(name)
        return send_from_directory(directory, path.name, mimetype="application/json")

    @app.route("/view/<name>")
    def view(name: str):
        path = _notebook_path(name)
        raw = json.loads(path.read_text(encoding="utf-8"))
        notebook = session.load(raw)
        if not notebook.title:
            notebook.title = name
        logger.info("Viewing %s (%d code cells)", path.name, sum(1 for _ in notebook.code_cells()))
        return render_page(session, notebook)

    @app.route("/api/run/<int:position>", methods=["POST"])
    def api_run(position: int):
        if not (0 <= position < len(session.run_codes)):
            return jsonify({"error": "position out of range"}), 400

        data = request.get_json(silent=True) or {}
        source = data.get("source")
        cell = session.run_codes[position].args[0]
        if isinstance(source, str):
            cell.input.source = source

        result = asyncio.run(session.run_codes[position]())
        return jsonify(_cell_payload(position, result))

    @app.route("/api/run-all", methods=["POST"])
    def api_run_all():
        results = asyncio.run(session.run_all())
        return jsonify({
            "results": [_cell_payload(i, result) for i, result in enumerate(results)],
        })

    @app.route("/api/dependencies", methods=["POST"])
    def api_dependencies():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"ok": False, "error": "expected a JSON object"}), 400
        session.update_dependencies(data)
        return jsonify({"ok": True, "dependencies": sorted(session.sandbox.dependencies)})

    # ------------------------------------------------------------------ #
    # Launch
    # ------------------------------------------------------------------ #

    logger.info("Serving notebooks from %s on %s:%d", directory, host, port)
    app.run(host=host, port=port, debug=False)


if __name__ == "__main__":
    launch_web(Path(sys.argv[1]) if len(sys.argv) > 1 else Path.cwd())
