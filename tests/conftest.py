import io
from pathlib import Path
from typing import Callable, Optional, Tuple

import pytest
from lxml import etree

from mlt_xml_checker.core.engine import CheckResult, MltXmlChecker
from mlt_xml_checker.core.settings import CheckerSettings

HEADER = '<?xml version="1.0" encoding="utf-8"?>\n'


def mlt_document(body: str, root_attributes: str = 'LC_NUMERIC="C" version="7.0.0"') -> str:
    return f"{HEADER}<mlt {root_attributes}>\n{body}\n</mlt>\n"


def find_property(root: etree._Element, parent_id: str, name: str) -> Optional[etree._Element]:
    return root.find(f'.//*[@id="{parent_id}"]/property[@name="{name}"]')


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    path = tmp_path / "app"
    path.mkdir()
    return path


@pytest.fixture
def settings(app_dir: Path) -> CheckerSettings:
    return CheckerSettings(decimal_point=".", app_dir=app_dir)


@pytest.fixture
def write_project(tmp_path: Path) -> Callable[..., Path]:
    def _write(body: str, name: str = "project.mlt", **kwargs: str) -> Path:
        path = tmp_path / name
        path.write_text(mlt_document(body, **kwargs), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def run_checker() -> Callable[[MltXmlChecker, Path], Tuple[CheckResult, str]]:
    def _run(checker: MltXmlChecker, path: Path) -> Tuple[CheckResult, str]:
        sink = io.BytesIO()
        result = checker.check(path, sink)
        return result, sink.getvalue().decode("utf-8")

    return _run
