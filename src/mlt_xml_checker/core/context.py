from dataclasses import dataclass
from typing import List, Optional

MLT_CLASSES = frozenset(
    {"profile", "producer", "filter", "playlist", "tractor", "track", "transition", "consumer"}
)

# classes whose properties may reference media files
RESOURCE_CLASSES = frozenset({"producer", "filter", "transition"})


def is_mlt_class(name: str) -> bool:
    return name in MLT_CLASSES


@dataclass
class ServiceContext:
    mlt_class: str
    name: str = ""
    resource: str = ""
    hash: str = ""
    new_path: str = ""
    new_hash: str = ""

    @property
    def holds_resources(self) -> bool:
        return self.mlt_class in RESOURCE_CLASSES

    @property
    def has_replacement(self) -> bool:
        return bool(self.new_path)

    @property
    def effective_path(self) -> str:
        return self.new_path or self.resource

    @property
    def hash_changed(self) -> bool:
        return bool(self.hash) and bool(self.new_hash) and self.hash != self.new_hash


class ContextStack:
    """Service contexts of the class elements currently open.

    Class elements nest (a ``tractor`` holds ``track`` and ``transition``), so
    the innermost one is current and closing it makes its parent current again.
    """

    def __init__(self) -> None:
        self._stack: List[ServiceContext] = []

    def __len__(self) -> int:
        return len(self._stack)

    @property
    def current(self) -> Optional[ServiceContext]:
        return self._stack[-1] if self._stack else None

    def enter(self, mlt_class: str) -> ServiceContext:
        context = ServiceContext(mlt_class)
        self._stack.append(context)
        return context

    def leave(self) -> ServiceContext:
        if not self._stack:
            raise IndexError("no open class element")
        return self._stack.pop()
