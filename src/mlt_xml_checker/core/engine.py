"""Single pass read/correct/write of MLT XML documents.

The input is fed in chunks to an lxml parser whose target is a
:class:`_RewriteTarget`. The target re-emits every token through an
incremental ``etree.xmlfile`` writer, except ``property`` elements claimed
by a field handler: their text is collected until the end tag and a
corrected element is written instead. Nothing but the currently intercepted
property is held in memory.
"""
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Tuple, Union

from lxml import etree

from mlt_xml_checker.core.context import ServiceContext, is_mlt_class
from mlt_xml_checker.core.errors import MltXmlCheckError, malformed_error, not_mlt_error, unsupported_error
from mlt_xml_checker.core.handlers import FieldHandler, select_handler
from mlt_xml_checker.core.registry import UnlinkedFilesRegistry
from mlt_xml_checker.core.settings import CheckerSettings
from mlt_xml_checker.core.state import CheckState, CorrectionFlags
from mlt_xml_checker.utils.logger import get_logger

logger = get_logger(__name__)

ROOT_ELEMENT = "mlt"
READ_CHUNK_SIZE = 64 * 1024
POINT_ATTRIBUTES = ("in", "out")
_ENTITY_DECLARATION = b"<!ENTITY"

PathLike = Union[str, Path]


def _local_name(tag: str) -> str:
    return etree.QName(tag).localname


def _external_doctype(name: str, pubid: Optional[str], system: Optional[str]) -> str:
    if pubid:
        return f'<!DOCTYPE {name} PUBLIC "{pubid}" "{system or ""}">'
    if system:
        return f'<!DOCTYPE {name} SYSTEM "{system}">'
    return f"<!DOCTYPE {name}>"


def _doctype_declaration(prolog: bytes) -> Optional[Tuple[str, int]]:
    """Raw ``<!DOCTYPE ...>`` text from the document prolog, internal subset included.

    Also returns how many comments and processing instructions the internal
    subset holds. Returns None while the declaration is not complete yet.
    """
    text = prolog.decode("utf-8", errors="replace")
    start = text.find("<!DOCTYPE")
    if start < 0:
        return None
    depth = 0
    nodes = 0
    quote = None
    i = start + len("<!DOCTYPE")
    while i < len(text):
        char = text[i]
        if quote:
            if char == quote:
                quote = None
        elif text.startswith("<!--", i) or text.startswith("<?", i):
            closing = "-->" if text.startswith("<!--", i) else "?>"
            end = text.find(closing, i + 2)
            if end < 0:
                return None
            nodes += 1
            i = end + len(closing)
            continue
        elif char in "\"'":
            quote = char
        elif char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
        elif char == ">" and depth == 0:
            return text[start : i + 1], nodes
        i += 1
    return None


def _foreign_namespaces(tag: str, attrib: Dict[str, str], nsmap: Optional[Dict[Optional[str], str]]) -> bool:
    """True when the element uses a namespace it does not declare itself."""
    used = {etree.QName(name).namespace for name in (tag, *attrib)} - {None}
    return bool(used - set((nsmap or {}).values()))


@dataclass
class _Capture:
    handler: FieldHandler
    tag: str
    attrib: Dict[str, str]
    nsmap: Optional[Dict[Optional[str], str]]
    chunks: List[str]


class _RewriteTarget:
    """lxml parser target that writes the corrected document as it is parsed."""

    def __init__(self, state: CheckState, writer: Any, prolog: bytearray):
        self.state = state
        self._xf = writer
        self._prolog = prolog
        self._open: List[Any] = []
        self._pending: Optional[Tuple[str, Dict[str, str], Optional[Dict[Optional[str], str]]]] = None
        self._capture: Optional[_Capture] = None
        self._doctype: Optional[Tuple[str, Optional[str], Optional[str]]] = None
        self._subset_nodes = 0
        self._root_seen = False
        self._root_closed = False

    @property
    def in_prolog(self) -> bool:
        return not self._root_seen

    def doctype(self, name: str, pubid: Optional[str], system: Optional[str]) -> None:
        # written once the declaration is complete, see _flush_doctype
        if not self._root_seen:
            self._doctype = (name, pubid, system)
            self._subset_nodes = 0

    def start(self, tag: str, attrib: Dict[str, str], nsmap: Optional[Dict[Optional[str], str]] = None) -> None:
        name = _local_name(tag)
        attrib = dict(attrib)
        if not self._root_seen:
            self._flush_doctype(final=True)
            if name != ROOT_ELEMENT:
                raise not_mlt_error()
            self._root_seen = True
            attrib = {k: v for k, v in attrib.items() if _local_name(k).upper() != "LC_NUMERIC"}
        if self._capture is not None:
            raise malformed_error(f"Expected character data, found element <{name}>.")
        self._flush_pending()

        if is_mlt_class(name):
            self.state.contexts.enter(name)
        elif name == "property":
            handler = select_handler(self.state, attrib.get("name", ""))
            if handler is not None:
                self._capture = _Capture(handler, tag, attrib, nsmap or None, [])
                return
        self._pending = (tag, self._check_points(attrib), nsmap or None)

    def end(self, tag: str) -> None:
        if self._capture is not None:
            capture, self._capture = self._capture, None
            self._write_property(capture)
            return
        if is_mlt_class(_local_name(tag)) and len(self.state.contexts):
            self._finalize(self.state.contexts.leave())
        if self._pending is not None:
            pending_tag, attrib, nsmap = self._pending
            self._pending = None
            self._write_leaf(pending_tag, attrib, nsmap)
        else:
            self._open.pop().__exit__(None, None, None)
        if not self._open:
            self._root_closed = True

    def data(self, text: str) -> None:
        if self._capture is not None:
            self._capture.chunks.append(text)
            return
        if not self._root_seen or self._root_closed:
            return
        self._flush_pending()
        self._xf.write(text)

    def comment(self, text: str) -> None:
        self._write_node(etree.Comment(text))

    def pi(self, target: str, data: Optional[str] = None) -> None:
        self._write_node(etree.ProcessingInstruction(target, data))

    def close(self) -> None:
        return None

    def _write_node(self, node: Any) -> None:
        if self._capture is not None:
            return
        if self._root_closed:
            logger.debug("dropping trailing %s after the root element", node.tag)
            return
        if not self._flush_doctype():
            # inside the internal subset, already part of the DOCTYPE text
            self._subset_nodes += 1
            return
        self._flush_pending()
        self._xf.write(node)

    def _flush_doctype(self, final: bool = False) -> bool:
        """Write a pending DOCTYPE; False while the parser is still inside it."""
        if self._doctype is None:
            return True
        scanned = _doctype_declaration(bytes(self._prolog))
        if scanned is None:
            if not final:
                return False
            declaration = _external_doctype(*self._doctype)
        else:
            declaration, nodes = scanned
            if not final and self._subset_nodes < nodes:
                return False
        self._doctype = None
        self._xf.write_doctype(declaration)
        return True

    def _write_leaf(
        self,
        tag: str,
        attrib: Dict[str, str],
        nsmap: Optional[Dict[Optional[str], str]],
        text: str = "",
    ) -> None:
        # empty elements without inherited prefixes stay self-closing
        if text or _foreign_namespaces(tag, attrib, nsmap):
            with self._xf.element(tag, attrib, nsmap):
                if text:
                    self._xf.write(text)
            return
        self._xf.write(etree.Element(tag, attrib, nsmap=nsmap))

    def _flush_pending(self) -> None:
        if self._pending is None:
            return
        tag, attrib, nsmap = self._pending
        self._pending = None
        element = self._xf.element(tag, attrib, nsmap)
        element.__enter__()
        self._open.append(element)

    def _check_points(self, attrib: Dict[str, str]) -> Dict[str, str]:
        checked = {}
        for key, value in attrib.items():
            if key in POINT_ATTRIBUTES:
                value = self.state.check_numeric(value)
            checked[key] = value
        return checked

    def _write_property(self, capture: _Capture) -> None:
        context = self.state.contexts.current
        text = capture.handler.rewrite(self.state, context, "".join(capture.chunks))
        self._write_leaf(capture.tag, capture.attrib, capture.nsmap, text or "")

    def _finalize(self, context: ServiceContext) -> None:
        settings = self.state.settings
        path = context.effective_path
        if not path or context.name in settings.synthetic_services:
            return
        if settings.exists(path):
            return
        if self.state.registry.add(path, context.hash):
            logger.error("file not found: %s", path)


@dataclass
class CheckResult:
    source: str
    flags: CorrectionFlags
    registry: UnlinkedFilesRegistry
    decimal_point: str

    @property
    def corrected(self) -> bool:
        return self.flags.is_corrected

    @property
    def needs_gpu(self) -> bool:
        return self.flags.needs_gpu

    @property
    def has_effects(self) -> bool:
        return self.flags.has_effects

    def unlinked_rows(self) -> List[Tuple[str, bool]]:
        return self.registry.rows()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project": self.source,
            "corrected": self.corrected,
            "needsGpu": self.needs_gpu,
            "hasEffects": self.has_effects,
            "decimalPoint": self.decimal_point,
            "flags": self.flags.to_dict(),
            "unlinked": self.registry.to_list(),
        }


class MltXmlChecker:
    """Checks and corrects MLT XML project files.

    The unlinked files registry is kept across calls to :meth:`check` so a
    caller can fill in replacements after a first run and apply them with a
    second one.
    """

    def __init__(
        self,
        settings: Optional[CheckerSettings] = None,
        registry: Optional[UnlinkedFilesRegistry] = None,
    ):
        self.settings = settings or CheckerSettings.from_env()
        self.registry = registry if registry is not None else UnlinkedFilesRegistry()

    def check(self, source: PathLike, sink: BinaryIO) -> CheckResult:
        """Read ``source`` and write the corrected document to ``sink``.

        The sink is left open. Raises :class:`MltXmlCheckError` when the input
        cannot be read, is not MLT XML or is not well-formed; whatever was
        written to the sink by then must be discarded.
        """
        path = str(source)
        logger.debug("decimal point %s", self.settings.decimal_point)
        logger.debug("begin %s", path)
        try:
            handle = open(path, "rb")
        except OSError as exc:
            raise MltXmlCheckError("IO_ERROR", f"Cannot open {path}: {exc.strerror or exc}") from exc
        with handle:
            state = CheckState(self.settings, self.registry, base_path=self.settings.canonical_dir(path))
            self._rewrite(handle, sink, state)
        logger.debug("end %s", path)
        return CheckResult(path, state.flags, self.registry, self.settings.decimal_point)

    def check_file(self, source: PathLike, target: PathLike) -> CheckResult:
        try:
            sink = open(target, "wb")
        except OSError as exc:
            raise MltXmlCheckError("IO_ERROR", f"Cannot write {target}: {exc.strerror or exc}") from exc
        with sink:
            return self.check(source, sink)

    def _rewrite(self, handle: BinaryIO, sink: BinaryIO, state: CheckState) -> None:
        prolog = bytearray()
        try:
            with etree.xmlfile(sink, encoding="utf-8") as xf:
                xf.write_declaration()
                target = _RewriteTarget(state, xf, prolog)
                parser = etree.XMLParser(target=target, resolve_entities=False, huge_tree=True)
                for chunk in iter(partial(handle.read, READ_CHUNK_SIZE), b""):
                    if target.in_prolog:
                        prolog += chunk
                    parser.feed(chunk)
                parser.close()
        except etree.XMLSyntaxError as exc:
            line, column = exc.position
            if _ENTITY_DECLARATION in prolog:
                # a parser target keeps no DTD, so declared entities cannot be registered
                raise unsupported_error(
                    "Entity declarations in the DOCTYPE internal subset are not supported.", line, column
                ) from exc
            raise malformed_error(exc.msg or str(exc), line, column) from exc
        except OSError as exc:
            raise MltXmlCheckError("IO_ERROR", f"I/O error: {exc.strerror or exc}") from exc
