from mlt_xml_checker.core.engine import CheckResult, MltXmlChecker
from mlt_xml_checker.core.errors import MltXmlCheckError
from mlt_xml_checker.core.registry import UnlinkedFile, UnlinkedFilesRegistry
from mlt_xml_checker.core.settings import CheckerSettings

__all__ = [
    "CheckResult",
    "CheckerSettings",
    "MltXmlCheckError",
    "MltXmlChecker",
    "UnlinkedFile",
    "UnlinkedFilesRegistry",
]
