"""Field correction handlers for ``property`` elements.

Each handler pairs a predicate on the property name and the current service
context with a rewrite of the property text. The engine offers every
``property`` start tag to :data:`HANDLERS` in order; the first handler whose
scope and predicate match consumes the element, and the text it returns is
written in place of the original. ``None`` drops the content.
"""
import os
from typing import Callable, NamedTuple, Optional, Tuple

from mlt_xml_checker.core.context import ServiceContext
from mlt_xml_checker.core.state import CheckState
from mlt_xml_checker.utils.logger import get_logger

logger = get_logger(__name__)

SCOPE_ANY = "any"
SCOPE_CLASS = "class"
SCOPE_RESOURCE = "resource"

RESOURCE_PROPERTIES: Tuple[str, ...] = (
    "resource",
    "src",
    "filename",
    "luma",
    "luma.resource",
    "composite.luma",
    "producer.resource",
)

NUMERIC_PROPERTIES: Tuple[str, ...] = ("length", "geometry")


class FieldHandler(NamedTuple):
    name: str
    scope: str
    matches: Callable[[CheckState, Optional[ServiceContext], str], bool]
    rewrite: Callable[[CheckState, Optional[ServiceContext], str], Optional[str]]


def _read_service(state: CheckState, context: ServiceContext, text: str) -> str:
    settings = state.settings
    context.name = text
    if not settings.is_audio_service(text):
        state.flags.has_effects = True
    if text.startswith(settings.gpu_prefixes):
        state.flags.needs_gpu = True
    return text


def _relocate_asset(state: CheckState, context: ServiceContext, text: str) -> str:
    settings = state.settings
    if not os.path.isabs(text):
        return text
    app_dir = str(settings.app_dir)
    if text.startswith(app_dir):
        return text
    index = text.find(settings.asset_marker)
    if index < 0:
        return text
    relocated = app_dir + text[index:]
    state.flags.corrected = True
    logger.info("relocated %s resource %s -> %s", context.name, text, relocated)
    return relocated


def _read_resource(state: CheckState, context: ServiceContext, text: str) -> str:
    if not text:
        context.resource = ""
        return text
    path = text if os.path.isabs(text) else os.path.join(state.base_path, text)
    context.resource = path
    entry = state.registry.replacement_for(path)
    if entry is None:
        return text
    context.new_path = entry.replacement_path or ""
    context.new_hash = entry.replacement_hash or ""
    state.flags.corrected = True
    logger.info("replaced unlinked file %s -> %s", path, context.new_path)
    return context.new_path


def _fix_hash(state: CheckState, context: ServiceContext, text: str) -> str:
    context.hash = text
    return context.new_hash


def _read_hash(state: CheckState, context: ServiceContext, text: str) -> str:
    context.hash = text
    return text


def _drop(state: CheckState, context: ServiceContext, text: str) -> None:
    return None


HANDLERS: Tuple[FieldHandler, ...] = (
    FieldHandler(
        "service",
        SCOPE_CLASS,
        lambda state, context, name: name == "mlt_service",
        _read_service,
    ),
    FieldHandler(
        "numeric",
        SCOPE_ANY,
        lambda state, context, name: name in NUMERIC_PROPERTIES,
        lambda state, context, text: state.check_numeric(text),
    ),
    FieldHandler(
        "relocate",
        SCOPE_RESOURCE,
        lambda state, context, name: name == "resource" and context.name == state.settings.relocated_service,
        _relocate_asset,
    ),
    FieldHandler(
        "resource",
        SCOPE_RESOURCE,
        lambda state, context, name: name in RESOURCE_PROPERTIES,
        _read_resource,
    ),
    FieldHandler(
        "fix-hash",
        SCOPE_RESOURCE,
        lambda state, context, name: name == state.settings.hash_property and bool(context.new_hash),
        _fix_hash,
    ),
    FieldHandler(
        "hash",
        SCOPE_RESOURCE,
        lambda state, context, name: name == state.settings.hash_property,
        _read_hash,
    ),
    FieldHandler(
        "fix-caption",
        SCOPE_RESOURCE,
        lambda state, context, name: name == state.settings.caption_property and context.has_replacement,
        lambda state, context, text: os.path.basename(context.new_path),
    ),
    FieldHandler(
        "fix-detail",
        SCOPE_RESOURCE,
        lambda state, context, name: name == state.settings.detail_property and context.has_replacement,
        lambda state, context, text: context.new_path,
    ),
    FieldHandler(
        "drop-audio-index",
        SCOPE_RESOURCE,
        lambda state, context, name: name == "audio_index" and context.hash_changed,
        _drop,
    ),
    FieldHandler(
        "drop-video-index",
        SCOPE_RESOURCE,
        lambda state, context, name: name == "video_index" and context.hash_changed,
        _drop,
    ),
)


def select_handler(state: CheckState, property_name: str) -> Optional[FieldHandler]:
    context = state.contexts.current
    for handler in HANDLERS:
        if handler.scope == SCOPE_CLASS and context is None:
            continue
        if handler.scope == SCOPE_RESOURCE and (context is None or not context.holds_resources):
            continue
        if handler.matches(state, context, property_name):
            return handler
    return None
