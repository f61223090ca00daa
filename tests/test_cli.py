import json

import pytest
from typer.testing import CliRunner

from conftest import mlt_document
from mlt_xml_checker import __version__
from mlt_xml_checker.api.protocol import ERROR_CODES, PROTOCOL_VERSION
from mlt_xml_checker.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def checker_env(monkeypatch, app_dir):
    monkeypatch.setenv("MLT_XML_CHECKER_DECIMAL_POINT", ".")
    monkeypatch.setenv("MLT_XML_CHECKER_APP_DIR", str(app_dir))


def _payload(result):
    return json.loads(result.stdout)


def _project(tmp_path, body):
    path = tmp_path / "project.mlt"
    path.write_text(mlt_document(body), encoding="utf-8")
    return path


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    payload = _payload(result)
    assert payload["ok"]
    assert payload["protocolVersion"] == PROTOCOL_VERSION
    assert payload["data"] == {"version": __version__}


def test_check_dry_run(tmp_path):
    path = _project(tmp_path, '  <producer id="p0">\n    <property name="geometry">0=0,0:10,10</property>\n  </producer>')
    result = runner.invoke(app, ["check", str(path), "--dry-run", "--decimal-point", "."])
    assert result.exit_code == 0
    payload = _payload(result)
    assert payload["command"] == "check"
    assert payload["data"]["written"] is None
    assert payload["data"]["decimalPoint"] == "."


def test_check_not_mlt(tmp_path):
    path = tmp_path / "doc.xml"
    path.write_text("<kdenlivedoc/>", encoding="utf-8")
    result = runner.invoke(app, ["check", str(path)])
    assert result.exit_code == ERROR_CODES["NOT_MLT"]
    payload = _payload(result)
    assert not payload["ok"]
    assert payload["error"]["code"] == "NOT_MLT"


def test_unlinked_exit_code(tmp_path):
    path = _project(
        tmp_path,
        '  <producer id="p0">\n'
        '    <property name="resource">/missing/a.mp4</property>\n'
        '    <property name="mlt_service">avformat</property>\n'
        "  </producer>",
    )
    result = runner.invoke(app, ["unlinked", str(path)])
    assert result.exit_code == ERROR_CODES["UNLINKED_FILES"]
    assert _payload(result)["data"]["unlinked"][0]["path"] == "/missing/a.mp4"


def test_relink_invalid_json(tmp_path):
    path = _project(tmp_path, '  <producer id="p0"/>')
    result = runner.invoke(app, ["relink", str(path), "--replacements-json", "[1"])
    assert result.exit_code == ERROR_CODES["INVALID_INPUT"]
    assert _payload(result)["error"]["code"] == "INVALID_INPUT"


def test_relink(tmp_path):
    found = tmp_path / "b.mp4"
    found.write_bytes(b"x")
    path = _project(
        tmp_path,
        '  <producer id="p0">\n'
        '    <property name="resource">/missing/a.mp4</property>\n'
        '    <property name="mlt_service">avformat</property>\n'
        "  </producer>",
    )
    replacements = json.dumps({"/missing/a.mp4": str(found)})
    result = runner.invoke(app, ["relink", str(path), "--replacements-json", replacements])
    assert result.exit_code == 0
    data = _payload(result)["data"]
    assert data["written"] == str(path)
    assert str(found) in path.read_text(encoding="utf-8")


def test_check_malformed_reports_position(tmp_path):
    path = tmp_path / "broken.mlt"
    path.write_text("<mlt>\n<producer></filter>\n</mlt>", encoding="utf-8")
    result = runner.invoke(app, ["check", str(path)])
    assert result.exit_code == ERROR_CODES["MALFORMED"]
    error = _payload(result)["error"]
    assert error["code"] == "MALFORMED"
    assert error["malformed"]
    assert error["line"] == 2
    assert "column" in error
