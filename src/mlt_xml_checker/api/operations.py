import hashlib
import os
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from mlt_xml_checker import __version__
from mlt_xml_checker.core.engine import CheckResult, MltXmlChecker
from mlt_xml_checker.core.errors import MltXmlCheckError
from mlt_xml_checker.core.registry import UnlinkedFilesRegistry
from mlt_xml_checker.core.settings import CheckerSettings
from mlt_xml_checker.utils.logger import get_logger

logger = get_logger(__name__)


class OperationError(Exception):
    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}


ACTION_METHODS = [
    "system.health",
    "system.version",
    "system.actions",
    "project.check",
    "project.unlinked",
    "project.relink",
]

HASH_CHUNK_SIZE = 1024 * 1024


def media_hash(path: str) -> str:
    """MD5 of a media file, sampling its first and last MiB when it is large."""
    digest = hashlib.md5()
    size = os.path.getsize(path)
    with open(path, "rb") as handle:
        if size <= 2 * HASH_CHUNK_SIZE:
            digest.update(handle.read())
        else:
            digest.update(handle.read(HASH_CHUNK_SIZE))
            handle.seek(-HASH_CHUNK_SIZE, os.SEEK_END)
            digest.update(handle.read(HASH_CHUNK_SIZE))
    return digest.hexdigest()


def _settings(params: Dict[str, Any]) -> CheckerSettings:
    settings = CheckerSettings.from_env()
    overrides: Dict[str, Any] = {}
    if params.get("decimal_point"):
        overrides["decimal_point"] = str(params["decimal_point"])
    if params.get("app_dir"):
        overrides["app_dir"] = Path(params["app_dir"])
    if not overrides:
        return settings
    try:
        return replace(settings, **overrides)
    except ValueError as exc:
        raise OperationError("INVALID_INPUT", str(exc)) from exc


def _project_path(params: Dict[str, Any]) -> Path:
    if not params.get("project"):
        raise OperationError("INVALID_INPUT", "project is required")
    project = Path(params["project"])
    if not project.is_file():
        raise OperationError("NOT_FOUND", f"Project file not found: {project}")
    return project


def _check(checker: MltXmlChecker, project: Path, target: str) -> CheckResult:
    try:
        return checker.check_file(project, target)
    except MltXmlCheckError as exc:
        raise OperationError(exc.code, exc.message, exc.to_dict()) from exc


def _discover(checker: MltXmlChecker, project: Path) -> CheckResult:
    return _check(checker, project, os.devnull)


def _check_and_write(
    checker: MltXmlChecker,
    project: Path,
    output: Optional[str],
    dry_run: bool,
) -> Dict[str, Any]:
    target = Path(output) if output else project
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=".mlt-xml-checker-", suffix=".mlt", dir=str(target.parent))
    os.close(fd)
    written = None
    try:
        result = _check(checker, project, temp_path)
        # an explicit output always gets the checked document
        if not dry_run and (result.corrected or output):
            os.replace(temp_path, target)
            written = str(target)
            logger.info("wrote %s", target)
    finally:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
    data = result.to_dict()
    data["written"] = written
    data["dryRun"] = dry_run
    return data


def _parse_replacement(original: str, value: Any) -> Tuple[str, Optional[str]]:
    if isinstance(value, str):
        return value, None
    if isinstance(value, dict) and value.get("path"):
        return str(value["path"]), value.get("hash")
    raise OperationError("INVALID_INPUT", f"Invalid replacement for {original}: expected a path or {{path, hash}}")


def _apply_replacements(registry: UnlinkedFilesRegistry, replacements: Dict[str, Any]) -> List[str]:
    ignored: List[str] = []
    for original, value in replacements.items():
        path, file_hash = _parse_replacement(original, value)
        if original not in registry:
            ignored.append(original)
            continue
        if not os.path.isfile(path):
            raise OperationError("NOT_FOUND", f"Replacement file not found: {path}")
        registry.set_replacement(original, path, file_hash or media_hash(path))
    return ignored


def execute(method: str, params: Dict[str, Any]) -> Dict[str, Any]:
    try:
        if method == "system.health":
            return {"status": "ok", "version": __version__}
        if method == "system.version":
            return {"version": __version__}
        if method == "system.actions":
            return {"actions": ACTION_METHODS}
        if method == "project.check":
            project = _project_path(params)
            checker = MltXmlChecker(_settings(params))
            return _check_and_write(checker, project, params.get("output"), bool(params.get("dry_run", False)))
        if method == "project.unlinked":
            project = _project_path(params)
            result = _discover(MltXmlChecker(_settings(params)), project)
            return {
                "project": str(project),
                "unlinked": result.registry.to_list(),
                "count": len(result.registry),
            }
        if method == "project.relink":
            project = _project_path(params)
            replacements = params.get("replacements")
            if not isinstance(replacements, dict) or not replacements:
                raise OperationError("INVALID_INPUT", "replacements must be a non-empty object")
            checker = MltXmlChecker(_settings(params), UnlinkedFilesRegistry())
            _discover(checker, project)
            ignored = _apply_replacements(checker.registry, replacements)
            data = _check_and_write(checker, project, params.get("output"), bool(params.get("dry_run", False)))
            data["ignored"] = ignored
            return data
        raise OperationError("INVALID_INPUT", f"Unknown method: {method}")
    except (KeyError, ValueError) as exc:
        raise OperationError("INVALID_INPUT", str(exc)) from exc
