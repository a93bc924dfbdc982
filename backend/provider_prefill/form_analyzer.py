"""
PDF Form Analyzer

Inspects an uploaded PDF and lists its AcroForm fields with a coarse kind.

XFA detection is a byte-level substring scan over the raw document, so it can
report false positives (e.g. the marker text inside an unrelated stream).
"""

from __future__ import annotations

import io
import logging
from typing import Dict, Iterator, List, Optional, Tuple

from pypdf import PdfReader
from pypdf.generic import DictionaryObject

from .models import ErrorCode, FieldKind, FormAnalysis, PDFFieldDescriptor

logger = logging.getLogger(__name__)

XFA_MARKERS = ("/XFA", "xfa:", "<xfa:", "xmlns:xfa", "<template xmlns", "XFA Foreground")

# Field flag bits (PDF 32000-1, 12.7.4)
FF_RADIO = 1 << 15
FF_PUSHBUTTON = 1 << 16
FF_COMBO = 1 << 17
FF_EDIT = 1 << 18

INHERITABLE_KEYS = ("/FT", "/Ff", "/V", "/Opt")

FieldEntry = Tuple[str, DictionaryObject, Dict[str, object]]


def resolve(obj):
    """Dereference indirect PDF objects; plain values pass through."""
    if obj is not None and hasattr(obj, "get_object"):
        return obj.get_object()
    return obj


def detect_xfa(pdf_bytes: bytes) -> bool:
    text = pdf_bytes.decode("latin-1")
    return any(marker in text for marker in XFA_MARKERS)


def classify_xfa_variant(pdf_bytes: bytes) -> str:
    text = pdf_bytes.decode("latin-1")
    if "<dynamicRender>" in text or "subform" in text:
        return "dynamic"
    if "<acroForm>" in text and "/XFA" in text:
        return "hybrid"
    return "static"


def iter_terminal_fields(acro_form) -> Iterator[FieldEntry]:
    """
    Yield (qualified name, field dictionary, inherited attributes) for every
    terminal field of an AcroForm.

    Kids without a /T entry are widget annotations of their parent, so a field
    whose kids are all unnamed is terminal.
    """
    acro_form = resolve(acro_form)
    if not acro_form:
        return
    visited = set()

    def walk(field_ref, parent_name: str, inherited: Dict[str, object]) -> Iterator[FieldEntry]:
        field_obj = resolve(field_ref)
        if field_obj is None or id(field_obj) in visited:
            return
        visited.add(id(field_obj))

        partial = resolve(field_obj.get("/T"))
        if partial is not None:
            name = f"{parent_name}.{partial}" if parent_name else str(partial)
        else:
            name = parent_name

        attrs = dict(inherited)
        for key in INHERITABLE_KEYS:
            if key in field_obj:
                attrs[key] = resolve(field_obj[key])

        kids = resolve(field_obj.get("/Kids")) or []
        named_kids = [kid for kid in kids if "/T" in resolve(kid)]
        if named_kids:
            for kid in named_kids:
                yield from walk(kid, name, attrs)
            return

        if name:
            yield name, field_obj, attrs

    for field_ref in resolve(acro_form.get("/Fields")) or []:
        yield from walk(field_ref, "", {})


def classify_field(attrs: Dict[str, object]) -> FieldKind:
    field_type = attrs.get("/FT")
    flags = int(attrs.get("/Ff", 0) or 0)

    if field_type == "/Tx":
        return FieldKind.TEXT
    if field_type == "/Btn":
        if flags & FF_PUSHBUTTON:
            return FieldKind.UNKNOWN
        if flags & FF_RADIO:
            return FieldKind.RADIO
        return FieldKind.CHECKBOX
    if field_type == "/Ch":
        return FieldKind.DROPDOWN if flags & FF_COMBO else FieldKind.UNKNOWN
    return FieldKind.UNKNOWN


def read_field_value(kind: FieldKind, attrs: Dict[str, object]) -> Optional[str]:
    """Best-effort current value; never raises."""
    try:
        value = resolve(attrs.get("/V"))
        if kind is FieldKind.TEXT:
            return str(value) if value else None
        if kind is FieldKind.CHECKBOX:
            return "checked" if value not in (None, "", "/Off") else "unchecked"
        if kind is FieldKind.DROPDOWN:
            if isinstance(value, list):
                value = resolve(value[0]) if value else None
            return str(value) if value else None
    except Exception as exc:
        logger.debug(f"Could not read value for field: {exc}")
    return None


def open_pdf(pdf_bytes: bytes) -> PdfReader:
    """Open a PDF leniently; encrypted documents are tried with the empty user password."""
    reader = PdfReader(io.BytesIO(pdf_bytes), strict=False)
    if reader.is_encrypted:
        reader.decrypt("")
    # Touch the page tree so broken documents fail here rather than mid-fill.
    len(reader.pages)
    return reader


class FormAnalyzer:
    """Lists fillable fields and flags XFA forms."""

    def extract_fields(self, reader: PdfReader) -> List[PDFFieldDescriptor]:
        root = resolve(reader.trailer["/Root"])
        acro_form = resolve(root.get("/AcroForm"))
        if not acro_form:
            return []

        descriptors = []
        for name, _field, attrs in iter_terminal_fields(acro_form):
            kind = classify_field(attrs)
            descriptors.append(PDFFieldDescriptor(name=name, kind=kind, value=read_field_value(kind, attrs)))
        return descriptors

    def analyze(self, pdf_bytes: bytes) -> FormAnalysis:
        """
        Analyze a PDF form.

        Returns: FormAnalysis with the discovered fields, or an error code
        (XFA_FORM_DETECTED, NO_FIELDS_DETECTED, PDF_LOAD_ERROR) and no fields.
        """
        is_xfa = detect_xfa(pdf_bytes)
        variant = classify_xfa_variant(pdf_bytes) if is_xfa else None
        if is_xfa:
            logger.warning(f"PDF contains XFA markers ({variant}); attempting AcroForm extraction")

        try:
            reader = open_pdf(pdf_bytes)
            fields = self.extract_fields(reader)
        except Exception as exc:
            logger.error("Failed to load PDF form: %s", exc, exc_info=True)
            return FormAnalysis(
                is_xfa=is_xfa,
                xfa_variant=variant,
                error_code=ErrorCode.XFA_FORM_DETECTED if is_xfa else ErrorCode.PDF_LOAD_ERROR,
            )

        if not fields:
            return FormAnalysis(
                is_xfa=is_xfa,
                xfa_variant=variant,
                error_code=ErrorCode.XFA_FORM_DETECTED if is_xfa else ErrorCode.NO_FIELDS_DETECTED,
            )

        logger.info(f"Found {len(fields)} form fields in PDF")
        logger.debug(f"Field names: {[descriptor.name for descriptor in fields]}")
        return FormAnalysis(
            fields=fields,
            is_xfa=is_xfa,
            has_fillable_fields=True,
            xfa_variant=variant,
        )
