import locale
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, FrozenSet, Tuple

from mlt_xml_checker.core.services import GPU_PREFIXES, SYNTHETIC_SERVICES, is_audio_filter

ENV_PREFIX = "MLT_XML_CHECKER_"


def _system_decimal_point() -> str:
    # LC_NUMERIC is process wide; put back whatever the caller had
    previous = locale.setlocale(locale.LC_NUMERIC)
    try:
        locale.setlocale(locale.LC_NUMERIC, "")
        return locale.localeconv().get("decimal_point") or "."
    except locale.Error:
        return "."
    finally:
        locale.setlocale(locale.LC_NUMERIC, previous)


def _default_app_dir() -> Path:
    app_dir = Path(sys.executable).resolve().parent
    if sys.platform.startswith("linux"):
        # leave the bin directory
        app_dir = app_dir.parent
    return app_dir


def _canonical_dir(path: str) -> str:
    return os.path.dirname(os.path.realpath(path))


@dataclass(frozen=True)
class CheckerSettings:
    """Collaborator inputs for one checker run.

    The property names for the content fingerprint and for the caption and
    detail text are owned by the application writing the documents, so they
    are carried here rather than in the handlers.
    """

    decimal_point: str = "."
    app_dir: Path = field(default_factory=_default_app_dir)
    asset_marker: str = "/share/shotcut/"
    relocated_service: str = "webvfx"
    hash_property: str = "shotcut:hash"
    caption_property: str = "shotcut:caption"
    detail_property: str = "shotcut:detail"
    synthetic_services: FrozenSet[str] = SYNTHETIC_SERVICES
    gpu_prefixes: Tuple[str, ...] = GPU_PREFIXES
    is_audio_service: Callable[[str], bool] = is_audio_filter
    exists: Callable[[str], bool] = os.path.exists
    canonical_dir: Callable[[str], str] = _canonical_dir

    def __post_init__(self) -> None:
        if len(self.decimal_point) != 1:
            raise ValueError(f"decimal_point must be a single character, got {self.decimal_point!r}")

    @classmethod
    def from_env(cls) -> "CheckerSettings":
        decimal_point = os.getenv(f"{ENV_PREFIX}DECIMAL_POINT") or _system_decimal_point()
        app_dir_env = os.getenv(f"{ENV_PREFIX}APP_DIR")
        app_dir = Path(app_dir_env) if app_dir_env else _default_app_dir()
        marker = os.getenv(f"{ENV_PREFIX}ASSET_MARKER") or cls.asset_marker
        return cls(decimal_point=decimal_point, app_dir=app_dir, asset_marker=marker)
