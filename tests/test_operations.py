import hashlib

import pytest

from conftest import mlt_document
from mlt_xml_checker import __version__
from mlt_xml_checker.api.operations import ACTION_METHODS, OperationError, execute, media_hash


@pytest.fixture(autouse=True)
def checker_env(monkeypatch, app_dir):
    monkeypatch.setenv("MLT_XML_CHECKER_DECIMAL_POINT", ".")
    monkeypatch.setenv("MLT_XML_CHECKER_APP_DIR", str(app_dir))


def _write(tmp_path, body, name="project.mlt"):
    path = tmp_path / name
    path.write_text(mlt_document(body), encoding="utf-8")
    return path


def _media_producer(producer_id, resource, file_hash="H1"):
    return "\n".join(
        [
            f'  <producer id="{producer_id}">',
            f'    <property name="resource">{resource}</property>',
            '    <property name="mlt_service">avformat</property>',
            f'    <property name="shotcut:hash">{file_hash}</property>',
            '    <property name="audio_index">1</property>',
            "  </producer>",
        ]
    )


def test_system_methods():
    assert execute("system.health", {}) == {"status": "ok", "version": __version__}
    assert execute("system.version", {}) == {"version": __version__}
    assert execute("system.actions", {})["actions"] == ACTION_METHODS


def test_unknown_method():
    with pytest.raises(OperationError) as excinfo:
        execute("project.nope", {})
    assert excinfo.value.code == "INVALID_INPUT"


def test_missing_project():
    with pytest.raises(OperationError) as excinfo:
        execute("project.check", {"project": "/does/not/exist.mlt"})
    assert excinfo.value.code == "NOT_FOUND"


def test_check_rewrites_corrected_project_in_place(tmp_path):
    path = _write(tmp_path, '  <producer id="p0" out="1.5">\n    <property name="length">12,5</property>\n  </producer>')
    data = execute("project.check", {"project": str(path)})

    assert data["corrected"]
    assert data["written"] == str(path)
    assert "12.5" in path.read_text(encoding="utf-8")
    assert data["flags"]["numericValueChanged"]
    assert data["flags"]["hasComma"]
    assert [p.name for p in tmp_path.iterdir() if p.name.startswith(".mlt-xml-checker-")] == []


def test_check_leaves_clean_project_alone(tmp_path):
    path = _write(tmp_path, '  <producer id="p0">\n    <property name="length">100</property>\n  </producer>')
    before = path.read_text(encoding="utf-8")
    data = execute("project.check", {"project": str(path)})

    assert not data["corrected"]
    assert data["written"] is None
    assert path.read_text(encoding="utf-8") == before


def test_check_dry_run_and_explicit_output(tmp_path):
    path = _write(tmp_path, '  <producer id="p0" in="0,5" out="1.5"/>')
    before = path.read_text(encoding="utf-8")

    data = execute("project.check", {"project": str(path), "dry_run": True})
    assert data["corrected"]
    assert data["written"] is None
    assert path.read_text(encoding="utf-8") == before

    output = tmp_path / "fixed" / "project.mlt"
    data = execute("project.check", {"project": str(path), "output": str(output)})
    assert data["written"] == str(output)
    assert 'in="0.5"' in output.read_text(encoding="utf-8")


def test_check_reports_malformed_project(tmp_path):
    path = tmp_path / "broken.mlt"
    path.write_text("<mlt><producer>", encoding="utf-8")
    with pytest.raises(OperationError) as excinfo:
        execute("project.check", {"project": str(path)})
    assert excinfo.value.code == "MALFORMED"
    assert excinfo.value.details["malformed"]
    assert excinfo.value.details["line"] == 1
    assert path.read_text(encoding="utf-8") == "<mlt><producer>"
    assert [p.name for p in tmp_path.iterdir() if p.name.startswith(".mlt-xml-checker-")] == []


def test_unlinked(tmp_path):
    path = _write(tmp_path, _media_producer("p0", "/missing/a.mp4"))
    data = execute("project.unlinked", {"project": str(path)})

    assert data["count"] == 1
    assert data["unlinked"][0]["path"] == "/missing/a.mp4"
    assert data["unlinked"][0]["hash"] == "H1"
    assert not data["unlinked"][0]["hasReplacement"]


def test_relink_applies_replacement(tmp_path):
    found = tmp_path / "b.mp4"
    found.write_bytes(b"replacement media")
    path = _write(tmp_path, _media_producer("p0", "/missing/a.mp4"))

    data = execute(
        "project.relink",
        {"project": str(path), "replacements": {"/missing/a.mp4": str(found), "/missing/z.mp4": str(found)}},
    )
    text = path.read_text(encoding="utf-8")

    assert data["corrected"]
    assert data["written"] == str(path)
    assert data["ignored"] == ["/missing/z.mp4"]
    assert data["unlinked"][0]["replacement"] == str(found)
    assert f'<property name="resource">{found}</property>' in text
    assert hashlib.md5(b"replacement media").hexdigest() in text
    assert '<property name="audio_index"/>' in text


def test_relink_with_explicit_hash(tmp_path):
    found = tmp_path / "b.mp4"
    found.write_bytes(b"x")
    path = _write(tmp_path, _media_producer("p0", "/missing/a.mp4"))

    execute(
        "project.relink",
        {"project": str(path), "replacements": {"/missing/a.mp4": {"path": str(found), "hash": "H1"}}},
    )
    text = path.read_text(encoding="utf-8")

    assert '<property name="shotcut:hash">H1</property>' in text
    assert '<property name="audio_index">1</property>' in text


def test_relink_rejects_bad_input(tmp_path):
    path = _write(tmp_path, _media_producer("p0", "/missing/a.mp4"))
    with pytest.raises(OperationError) as excinfo:
        execute("project.relink", {"project": str(path), "replacements": {}})
    assert excinfo.value.code == "INVALID_INPUT"
    with pytest.raises(OperationError) as excinfo:
        execute("project.relink", {"project": str(path), "replacements": {"/missing/a.mp4": 3}})
    assert excinfo.value.code == "INVALID_INPUT"
    with pytest.raises(OperationError) as excinfo:
        execute("project.relink", {"project": str(path), "replacements": {"/missing/a.mp4": "/missing/b.mp4"}})
    assert excinfo.value.code == "NOT_FOUND"


def test_media_hash_samples_large_files(tmp_path):
    small = tmp_path / "small.bin"
    small.write_bytes(b"abc")
    assert media_hash(str(small)) == hashlib.md5(b"abc").hexdigest()

    mib = 1024 * 1024
    head, middle, tail = b"h" * mib, b"m" * mib, b"t" * mib
    large = tmp_path / "large.bin"
    large.write_bytes(head + middle + tail)
    assert media_hash(str(large)) == hashlib.md5(head + tail).hexdigest()
