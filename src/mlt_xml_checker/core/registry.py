from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass
class UnlinkedFile:
    original_path: str
    original_hash: str = ""
    replacement_path: Optional[str] = None
    replacement_hash: Optional[str] = None

    @property
    def has_replacement(self) -> bool:
        return bool(self.replacement_path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.original_path,
            "hash": self.original_hash or None,
            "replacement": self.replacement_path,
            "replacementHash": self.replacement_hash,
            "hasReplacement": self.has_replacement,
        }


class UnlinkedFilesRegistry:
    """Missing media paths in first-seen order, with optional replacements.

    The registry outlives a single run: a caller runs the checker once to
    discover missing files, sets replacements, then runs it again so the
    replacements are written into the document.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, UnlinkedFile] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[UnlinkedFile]:
        return iter(list(self._entries.values()))

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def get(self, path: str) -> Optional[UnlinkedFile]:
        return self._entries.get(path)

    def add(self, path: str, original_hash: str = "") -> bool:
        if not path:
            raise ValueError("path is required")
        if path in self._entries:
            return False
        self._entries[path] = UnlinkedFile(path, original_hash)
        return True

    def set_replacement(self, path: str, replacement: str, replacement_hash: Optional[str] = None) -> UnlinkedFile:
        entry = self._entries.get(path)
        if entry is None:
            raise KeyError(path)
        if not replacement:
            raise ValueError("replacement path is required")
        entry.replacement_path = replacement
        entry.replacement_hash = replacement_hash or ""
        return entry

    def clear_replacement(self, path: str) -> None:
        entry = self._entries.get(path)
        if entry is None:
            raise KeyError(path)
        entry.replacement_path = None
        entry.replacement_hash = None

    def replacement_for(self, path: str) -> Optional[UnlinkedFile]:
        entry = self._entries.get(path)
        if entry is None or not entry.has_replacement:
            return None
        return entry

    def rows(self) -> List[Tuple[str, bool]]:
        return [(entry.original_path, entry.has_replacement) for entry in self]

    def unresolved(self) -> List[str]:
        return [entry.original_path for entry in self if not entry.has_replacement]

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self]
