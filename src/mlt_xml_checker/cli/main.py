import json
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from mlt_xml_checker import __version__
from mlt_xml_checker.api.operations import OperationError, execute
from mlt_xml_checker.api.protocol import ERROR_CODES, PROTOCOL_VERSION
from mlt_xml_checker.utils.logger import set_verbose

app = typer.Typer(add_completion=False, help="Check and repair MLT XML project files")


def _print(payload: Dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _ok(command: str, data: Dict[str, Any]) -> None:
    _print({"ok": True, "protocolVersion": PROTOCOL_VERSION, "command": command, "data": data})


def _fail(
    command: str,
    code: str,
    message: str,
    retryable: bool = False,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    error = {"code": code, "message": message, "retryable": retryable}
    for key, value in (details or {}).items():
        error.setdefault(key, value)
    _print({"ok": False, "protocolVersion": PROTOCOL_VERSION, "command": command, "error": error})
    raise SystemExit(ERROR_CODES.get(code, 1))


def _call(command: str, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return execute(method, params)
    except OperationError as exc:
        _fail(command, exc.code, exc.message, retryable=exc.code == "IO_ERROR", details=exc.details)
    except Exception as exc:
        _fail(command, "ERROR", str(exc))
    raise RuntimeError("unreachable")


def _json_arg(command: str, raw: str) -> Dict[str, Any]:
    try:
        val = json.loads(raw)
    except json.JSONDecodeError as exc:
        _fail(command, "INVALID_INPUT", f"Invalid JSON: {exc}")
    if not isinstance(val, dict):
        _fail(command, "INVALID_INPUT", "JSON value must be an object")
    return val


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    set_verbose(verbose)


@app.command("version")
def version() -> None:
    _ok("version", {"version": __version__})


@app.command("actions")
def actions() -> None:
    _ok("actions", _call("actions", "system.actions", {}))


@app.command("check")
def check(
    project: Path,
    output: Optional[Path] = None,
    dry_run: bool = False,
    decimal_point: Optional[str] = None,
) -> None:
    _ok(
        "check",
        _call(
            "check",
            "project.check",
            {
                "project": str(project),
                "output": str(output) if output else None,
                "dry_run": dry_run,
                "decimal_point": decimal_point,
            },
        ),
    )


@app.command("unlinked")
def unlinked(project: Path, decimal_point: Optional[str] = None) -> None:
    data = _call("unlinked", "project.unlinked", {"project": str(project), "decimal_point": decimal_point})
    _ok("unlinked", data)
    if data.get("count", 0):
        raise SystemExit(ERROR_CODES["UNLINKED_FILES"])


@app.command("relink")
def relink(
    project: Path,
    replacements_json: str = typer.Option(..., "--replacements-json"),
    output: Optional[Path] = None,
    dry_run: bool = False,
) -> None:
    replacements = _json_arg("relink", replacements_json)
    _ok(
        "relink",
        _call(
            "relink",
            "project.relink",
            {
                "project": str(project),
                "replacements": replacements,
                "output": str(output) if output else None,
                "dry_run": dry_run,
            },
        ),
    )


def main() -> None:
    app()
