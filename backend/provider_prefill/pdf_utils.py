"""
Low-level PDF utilities for filling AcroForm-based provider forms.

Text and dropdown values go through pypdf's
`PdfWriter.update_page_form_field_values`, one field at a time on the page that
holds its widget, so each gets a fresh appearance stream. Checkboxes are set
by hand: /V plus each widget's /AS, using the on-state name from the widget's
own appearance dictionary. /NeedAppearances is set as well.
"""

from __future__ import annotations

import io
import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from pypdf import PageObject, PdfWriter
from pypdf.generic import BooleanObject, NameObject

from .auto_mapper import ProviderFieldMapper, merge_mappings
from .exceptions import PDFPrefillError
from .form_analyzer import FF_EDIT, iter_terminal_fields, open_pdf, resolve
from .models import (
    ErrorCode,
    FieldKind,
    FilledField,
    FillResult,
    PDFFieldDescriptor,
    ProviderRecord,
    SkippedField,
)

logger = logging.getLogger(__name__)

CHECKBOX_TRUE_VALUES = frozenset({"yes", "true", "1", "checked", "x"})

REASON_EXCLUDED = "excluded organization/facility field"
REASON_NO_MATCH = "no matching field in provider data"
REASON_NOT_IN_OPTIONS = "value not in dropdown options"
REASON_UNSUPPORTED = "unsupported field type"
REASON_ERROR = "error filling field"


def low_confidence_reason(confidence: float) -> str:
    return f"low confidence match ({round(confidence * 100)}%)"


def no_data_reason(provider_field: str) -> str:
    return f"provider has no data for '{provider_field}'"


def output_filename(provider_name: str, original_filename: str) -> str:
    """Download name for a filled form: sanitized provider name + original filename."""
    return f"{re.sub(r'[^A-Za-z0-9]', '_', provider_name)}_{original_filename}"


def _widgets(field) -> List:
    """Widget annotations of a terminal field (the field itself when merged)."""
    widgets = []
    if field.get("/Subtype") == "/Widget":
        widgets.append(field)
    for kid in resolve(field.get("/Kids")) or []:
        kid = resolve(kid)
        if "/T" not in kid:
            widgets.append(kid)
    return widgets


def _widget_pages(writer: PdfWriter) -> Dict[int, PageObject]:
    """Map each widget annotation (by object identity) to the page showing it."""
    pages = {}
    for page in writer.pages:
        for annotation in resolve(page.get("/Annots")) or []:
            pages[id(resolve(annotation))] = page
    return pages


def _page_for(field, widget_pages: Mapping[int, PageObject]) -> PageObject:
    for widget in _widgets(field):
        page = widget_pages.get(id(widget))
        if page is not None:
            return page
    raise LookupError("field has no widget on any page")


def _on_state(widget) -> str:
    """Name of the 'checked' appearance state, /Yes when the widget does not say."""
    appearance = resolve(widget.get("/AP"))
    if appearance:
        normal = resolve(appearance.get("/N"))
        if hasattr(normal, "keys"):
            for state in normal.keys():
                if state != "/Off":
                    return str(state)
    return "/Yes"


def _dropdown_options(attrs: Mapping[str, object]) -> List[Tuple[str, str]]:
    """(export value, display value) pairs from /Opt."""
    options = []
    for option in resolve(attrs.get("/Opt")) or []:
        option = resolve(option)
        if isinstance(option, list):
            export = str(resolve(option[0])) if option else ""
            display = str(resolve(option[1])) if len(option) > 1 else export
        else:
            export = display = str(option)
        options.append((export, display))
    return options


def set_field_value(writer: PdfWriter, page: PageObject, name: str, value: str) -> None:
    writer.update_page_form_field_values(page, {name: value})


def set_checkbox_state(field, checked: bool) -> None:
    widgets = _widgets(field)
    value_state = "/Off"
    for widget in widgets:
        state = _on_state(widget) if checked else "/Off"
        widget[NameObject("/AS")] = NameObject(state)
        if checked and value_state == "/Off":
            value_state = state
    if checked and not widgets:
        value_state = _on_state(field)
    field[NameObject("/V")] = NameObject(value_state)


def dropdown_export_value(attrs: Mapping[str, object], value: str) -> Optional[str]:
    """Export value matching `value` by export or display text, None if it is not an option."""
    for export, display in _dropdown_options(attrs):
        if value in (export, display):
            return export
    if int(attrs.get("/Ff", 0) or 0) & FF_EDIT:
        return value
    return None


def _skip_reason(
    descriptor: PDFFieldDescriptor,
    mapper: ProviderFieldMapper,
    auto_mappings: Dict[str, object],
    cleared: Iterable[str],
) -> str:
    if descriptor.name in cleared:
        return REASON_NO_MATCH
    if mapper.is_excluded(descriptor.name):
        return REASON_EXCLUDED
    auto = auto_mappings.get(descriptor.name)
    if auto is not None and 0 < auto.confidence < mapper.threshold:
        return low_confidence_reason(auto.confidence)
    return REASON_NO_MATCH


def fill_pdf(
    pdf_bytes: bytes,
    pdf_fields: List[PDFFieldDescriptor],
    provider: ProviderRecord,
    custom_mappings: Optional[Mapping[str, str]] = None,
    mapper: Optional[ProviderFieldMapper] = None,
) -> FillResult:
    """
    Fill a PDF form with one provider's data.

    Args:
        pdf_bytes: Original PDF document; it is never modified.
        pdf_fields: Field descriptors from FormAnalyzer, in extraction order.
        provider: Provider whose data is written.
        custom_mappings: Reviewer overrides of PDF field -> provider field.
            A blank value clears the auto mapping for that field.
        mapper: Field mapper to use (default settings if omitted).

    Returns:
        FillResult with the new document bytes and a filled/skipped entry for
        every descriptor.

    Raises:
        PDFPrefillError: the document cannot be loaded (PDF_LOAD_ERROR).
    """
    mapper = mapper or ProviderFieldMapper()
    auto_list = mapper.map_fields(pdf_fields, provider)
    auto_mappings = {mapping.pdf_field: mapping for mapping in auto_list}
    effective, cleared = merge_mappings(auto_list, custom_mappings, mapper.threshold)

    try:
        reader = open_pdf(pdf_bytes)
        writer = PdfWriter(clone_from=reader)
    except Exception as exc:
        logger.error("Error loading PDF for provider %s: %s", provider.name, exc, exc_info=True)
        raise PDFPrefillError(f"Failed to load PDF: {exc}", code=ErrorCode.PDF_LOAD_ERROR) from exc

    acro_form = resolve(writer.root_object.get("/AcroForm"))
    form_fields = {name: (field, attrs) for name, field, attrs in iter_terminal_fields(acro_form)}
    widget_pages = _widget_pages(writer)

    filled: List[FilledField] = []
    skipped: List[SkippedField] = []

    for descriptor in pdf_fields:
        name = descriptor.name
        provider_field = effective.get(name)
        if not provider_field:
            skipped.append(SkippedField(name, _skip_reason(descriptor, mapper, auto_mappings, cleared)))
            continue

        value = provider.value_for(provider_field)
        if not value:
            skipped.append(SkippedField(name, no_data_reason(provider_field)))
            continue

        if descriptor.kind in (FieldKind.RADIO, FieldKind.UNKNOWN):
            skipped.append(SkippedField(name, REASON_UNSUPPORTED))
            continue

        try:
            field, attrs = form_fields[name]
            if descriptor.kind is FieldKind.TEXT:
                set_field_value(writer, _page_for(field, widget_pages), name, value)
                filled.append(FilledField(name, provider_field, value))
            elif descriptor.kind is FieldKind.CHECKBOX:
                checked = value.lower() in CHECKBOX_TRUE_VALUES
                set_checkbox_state(field, checked)
                filled.append(FilledField(name, provider_field, "Checked" if checked else "Unchecked"))
            elif descriptor.kind is FieldKind.DROPDOWN:
                export = dropdown_export_value(attrs, value)
                if export is not None:
                    set_field_value(writer, _page_for(field, widget_pages), name, export)
                    filled.append(FilledField(name, provider_field, value))
                else:
                    skipped.append(SkippedField(name, REASON_NOT_IN_OPTIONS))
        except Exception as exc:
            logger.warning(f"Could not fill field {name}: {exc}")
            skipped.append(SkippedField(name, REASON_ERROR))

    if acro_form is not None:
        acro_form[NameObject("/NeedAppearances")] = BooleanObject(True)

    buffer = io.BytesIO()
    writer.write(buffer)

    logger.info(
        f"Filled {len(filled)} of {len(pdf_fields)} fields for provider '{provider.name}' "
        f"({len(skipped)} skipped)"
    )
    return FillResult(
        filled_bytes=buffer.getvalue(),
        filled=filled,
        skipped=skipped,
        total_fields=len(pdf_fields),
    )
