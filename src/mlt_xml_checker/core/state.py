from dataclasses import dataclass, field
from typing import Dict

from mlt_xml_checker.core.context import ContextStack
from mlt_xml_checker.core.numeric import normalize_decimal
from mlt_xml_checker.core.registry import UnlinkedFilesRegistry
from mlt_xml_checker.core.settings import CheckerSettings


@dataclass
class CorrectionFlags:
    corrected: bool = False
    needs_gpu: bool = False
    has_effects: bool = False
    has_comma: bool = False
    has_period: bool = False
    numeric_value_changed: bool = False

    @property
    def is_corrected(self) -> bool:
        # both separators seen and one rewritten means the document came from another locale
        locale_fixed = self.has_comma and self.has_period and self.numeric_value_changed
        return self.corrected or locale_fixed

    def to_dict(self) -> Dict[str, bool]:
        return {
            "corrected": self.is_corrected,
            "needsGpu": self.needs_gpu,
            "hasEffects": self.has_effects,
            "hasComma": self.has_comma,
            "hasPeriod": self.has_period,
            "numericValueChanged": self.numeric_value_changed,
        }


@dataclass
class CheckState:
    """Everything one run shares between the engine and the field handlers."""

    settings: CheckerSettings
    registry: UnlinkedFilesRegistry
    base_path: str = ""
    flags: CorrectionFlags = field(default_factory=CorrectionFlags)
    contexts: ContextStack = field(default_factory=ContextStack)

    def check_numeric(self, value: str) -> str:
        flags = self.flags
        if not flags.has_comma:
            flags.has_comma = "," in value
        if not flags.has_period:
            flags.has_period = "." in value
        value, changed = normalize_decimal(value, self.settings.decimal_point)
        if changed:
            flags.numeric_value_changed = True
        return value
