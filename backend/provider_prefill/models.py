"""
Data structures shared by the analyzer, mapper, filler and service.

Provider records come from the compliance export; everything else is
transient and lives for a single analysis or fill.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class FieldKind(str, Enum):
    """Coarse AcroForm field kinds the filler knows how to dispatch on."""

    TEXT = "text"
    CHECKBOX = "checkbox"
    DROPDOWN = "dropdown"
    RADIO = "radio"
    UNKNOWN = "unknown"


class ErrorCode(str, Enum):
    """Plain string identifiers surfaced to callers instead of exception types."""

    XFA_FORM_DETECTED = "XFA_FORM_DETECTED"
    NO_FIELDS_DETECTED = "NO_FIELDS_DETECTED"
    PDF_LOAD_ERROR = "PDF_LOAD_ERROR"
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"


@dataclass
class ProviderRecord:
    """One provider column of the compliance export."""

    name: str
    data: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Provider name must not be empty")

    def value_for(self, field_name: str) -> str:
        """Return the stripped value for `field_name`, or "" when there is no data."""
        value = self.data.get(field_name)
        if value is None:
            return ""
        return str(value).strip()

    def populated_fields(self) -> List[str]:
        return [name for name in self.data if self.value_for(name)]

    def to_dict(self) -> Dict:
        return {"name": self.name, "data": dict(self.data)}

    @classmethod
    def from_dict(cls, payload: Dict) -> "ProviderRecord":
        return cls(name=payload["name"], data=dict(payload.get("data") or {}))


@dataclass
class ParsedProviderData:
    providers: List[ProviderRecord] = field(default_factory=list)
    all_fields: List[str] = field(default_factory=list)
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "providers": [provider.to_dict() for provider in self.providers],
            "all_fields": list(self.all_fields),
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "ParsedProviderData":
        return cls(
            providers=[ProviderRecord.from_dict(p) for p in payload.get("providers", [])],
            all_fields=list(payload.get("all_fields", [])),
            last_updated=payload.get("last_updated"),
        )


@dataclass(frozen=True)
class PDFFieldDescriptor:
    name: str
    kind: FieldKind = FieldKind.UNKNOWN
    value: Optional[str] = None

    def to_dict(self) -> Dict:
        return {"name": self.name, "type": self.kind.value, "value": self.value}


@dataclass
class FieldMapping:
    """Best provider column for one PDF field.

    An empty `provider_field` means no candidate reached the confidence
    threshold; `confidence` still records the best raw score so reviewers can
    see near misses.
    """

    pdf_field: str
    provider_field: str
    confidence: float
    suggested_value: str = ""

    @property
    def confidence_label(self) -> str:
        if self.confidence >= 0.8:
            return "High"
        if self.confidence >= 0.5:
            return "Medium"
        return "Low"

    def to_dict(self) -> Dict:
        payload = asdict(self)
        payload["confidence_label"] = self.confidence_label
        return payload


@dataclass(frozen=True)
class FilledField:
    field_name: str
    provider_field: str
    value: str


@dataclass(frozen=True)
class SkippedField:
    field_name: str
    reason: str


@dataclass
class FillResult:
    filled_bytes: bytes
    filled: List[FilledField] = field(default_factory=list)
    skipped: List[SkippedField] = field(default_factory=list)
    total_fields: int = 0

    def to_dict(self) -> Dict:
        return {
            "filled": [asdict(item) for item in self.filled],
            "skipped": [asdict(item) for item in self.skipped],
            "total_fields": self.total_fields,
            "filled_count": len(self.filled),
            "skipped_count": len(self.skipped),
        }


@dataclass
class FormAnalysis:
    fields: List[PDFFieldDescriptor] = field(default_factory=list)
    is_xfa: bool = False
    has_fillable_fields: bool = False
    xfa_variant: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    @property
    def ok(self) -> bool:
        return self.error_code is None

    def to_dict(self) -> Dict:
        return {
            "fields": [descriptor.to_dict() for descriptor in self.fields],
            "is_xfa": self.is_xfa,
            "has_fillable_fields": self.has_fillable_fields,
            "xfa_variant": self.xfa_variant,
            "error_code": self.error_code.value if self.error_code else None,
        }


@dataclass(frozen=True)
class MappingCoverage:
    will_fill: int
    missing_data: int
    unmapped: int
    total_fields: int

    @property
    def coverage(self) -> int:
        if self.total_fields <= 0:
            return 0
        return round(self.will_fill / self.total_fields * 100)

    def to_dict(self) -> Dict:
        payload = asdict(self)
        payload["coverage"] = self.coverage
        return payload
