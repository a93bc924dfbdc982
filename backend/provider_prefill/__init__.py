"""
Provider form pre-fill package.

This module bundles reusable utilities for:
  - analyzing PDF forms (AcroForm fields, XFA detection)
  - mapping provider compliance data onto PDF form fields
  - filling forms and reporting which fields were filled or skipped and why
  - loading and persisting provider data from the compliance CSV export
"""

from .auto_mapper import ProviderFieldMapper, merge_mappings, summarize_coverage
from .exceptions import PDFPrefillError
from .form_analyzer import FormAnalyzer
from .models import (
    ErrorCode,
    FieldKind,
    FieldMapping,
    FillResult,
    FormAnalysis,
    ParsedProviderData,
    PDFFieldDescriptor,
    ProviderRecord,
)
from .pdf_utils import fill_pdf, output_filename
from .service import ProviderPrefillService
from .similarity import similarity

__all__ = [
    "ProviderPrefillService",
    "PDFPrefillError",
    "ProviderFieldMapper",
    "FormAnalyzer",
    "fill_pdf",
    "output_filename",
    "similarity",
    "merge_mappings",
    "summarize_coverage",
    "ErrorCode",
    "FieldKind",
    "FieldMapping",
    "FillResult",
    "FormAnalysis",
    "ParsedProviderData",
    "PDFFieldDescriptor",
    "ProviderRecord",
]
