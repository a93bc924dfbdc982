"""
High-level service that exposes provider pre-fill capabilities to the FastAPI layer.

Responsibilities
----------------
* import and persist provider data from the compliance export
* analyze uploaded PDF forms and suggest field mappings per provider
* fill forms for one provider or a batch of providers (ZIP bundle)
* store generated PDFs (local disk or S3) and keep a TTL cache of them
"""

from __future__ import annotations

import datetime as dt
import io
import json
import logging
import uuid
import zipfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import boto3
from cachetools import TTLCache

from .auto_mapper import ProviderFieldMapper, summarize_coverage
from .csv_loader import filter_by_state, license_state_counts, parse_provider_csv
from .exceptions import PDFPrefillError
from .form_analyzer import FormAnalyzer
from .models import ErrorCode, FormAnalysis, ParsedProviderData, ProviderRecord
from .pdf_utils import fill_pdf, output_filename
from .settings import PrefillSettings
from .storage import ProviderStore

logger = logging.getLogger(__name__)

_ERROR_MESSAGES = {
    ErrorCode.XFA_FORM_DETECTED: (
        "This PDF uses XFA forms, which cannot be filled here. Open it in Adobe "
        "Acrobat and re-save it as a standard PDF with AcroForm fields."
    ),
    ErrorCode.NO_FIELDS_DETECTED: "This PDF has no fillable form fields.",
    ErrorCode.PDF_LOAD_ERROR: "The PDF could not be read. It may be corrupt or encrypted.",
}


class ProviderPrefillService:
    def __init__(
        self,
        settings: Optional[PrefillSettings] = None,
        s3_client=None,
    ):
        self.settings = settings or PrefillSettings.from_env()
        self.base_dir = Path(self.settings.base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

        self.generated_dir = self.base_dir / "generated"
        self.generated_dir.mkdir(parents=True, exist_ok=True)

        self.store = ProviderStore(self.base_dir)
        self.analyzer = FormAnalyzer()
        self.field_mapper = ProviderFieldMapper(self.settings.matcher)

        self._pdf_cache: TTLCache = TTLCache(
            maxsize=self.settings.cache_size, ttl=self.settings.cache_ttl_seconds
        )

        self.s3_bucket = self.settings.s3_bucket
        self.s3_prefix = self.settings.s3_prefix
        self.s3 = s3_client
        if self.s3_bucket and self.s3 is None:
            self.s3 = boto3.client("s3")

    # ------------------------------------------------------------------
    # Provider data
    # ------------------------------------------------------------------
    def import_providers_csv(self, csv_text: str) -> ParsedProviderData:
        parsed = parse_provider_csv(csv_text)
        return self.store.save_providers(parsed)

    def load_providers(self) -> ParsedProviderData:
        return self.store.load_providers() or ParsedProviderData()

    def provider_status(self) -> Dict:
        data = self.store.load_providers() if self.store.has_providers() else None
        return {
            "has_providers": data is not None,
            "provider_count": len(data.providers) if data else 0,
            "last_updated": data.last_updated if data else None,
        }

    def clear_providers(self) -> None:
        self.store.clear_providers()
        logger.info("Cleared stored provider data")

    def list_providers(self, state: Optional[str] = None) -> List[ProviderRecord]:
        providers = self.load_providers().providers
        if state:
            providers = filter_by_state(providers, state)
        return providers

    def state_counts(self) -> Dict[str, int]:
        return license_state_counts(self.load_providers().providers)

    def get_provider(self, name: str) -> ProviderRecord:
        for provider in self.load_providers().providers:
            if provider.name == name:
                return provider
        raise PDFPrefillError(f"Provider '{name}' not found.", code=ErrorCode.PROVIDER_NOT_FOUND)

    # ------------------------------------------------------------------
    # Mapping overrides
    # ------------------------------------------------------------------
    def list_saved_mappings(self) -> Dict[str, Dict[str, str]]:
        return self.store.list_mappings()

    def get_saved_mapping(self, form_name: str) -> Dict[str, str]:
        return self.store.load_mapping(form_name) or {}

    def save_mapping(self, form_name: str, mapping: Dict[str, str]) -> None:
        self.store.save_mapping(form_name, mapping)

    def delete_mapping(self, form_name: str) -> bool:
        return self.store.delete_mapping(form_name)

    # ------------------------------------------------------------------
    # Analysis + mapping
    # ------------------------------------------------------------------
    def analyze_form(self, pdf_bytes: bytes) -> FormAnalysis:
        return self.analyzer.analyze(pdf_bytes)

    def _require_fields(self, pdf_bytes: bytes) -> FormAnalysis:
        analysis = self.analyze_form(pdf_bytes)
        if analysis.error_code is not None:
            raise PDFPrefillError(_ERROR_MESSAGES[analysis.error_code], code=analysis.error_code)
        return analysis

    def suggest_mappings(self, pdf_bytes: bytes, provider_name: str) -> Dict:
        provider = self.get_provider(provider_name)
        analysis = self._require_fields(pdf_bytes)
        mappings = self.field_mapper.map_fields(analysis.fields, provider)
        return {
            "provider": provider.name,
            "fields": [descriptor.to_dict() for descriptor in analysis.fields],
            "mappings": [mapping.to_dict() for mapping in mappings],
            "coverage": summarize_coverage(mappings, provider).to_dict(),
            "is_xfa": analysis.is_xfa,
            "xfa_variant": analysis.xfa_variant,
        }

    # ------------------------------------------------------------------
    # PDF generation / storage
    # ------------------------------------------------------------------
    def fill_form(
        self,
        pdf_bytes: bytes,
        filename: str,
        provider_name: str,
        custom_mappings: Optional[Mapping[str, str]] = None,
        form_name: Optional[str] = None,
        persist: bool = True,
    ) -> Dict:
        provider = self.get_provider(provider_name)
        analysis = self._require_fields(pdf_bytes)

        mapping = dict(self.get_saved_mapping(form_name)) if form_name else {}
        mapping.update(custom_mappings or {})

        result = fill_pdf(
            pdf_bytes,
            analysis.fields,
            provider,
            custom_mappings=mapping,
            mapper=self.field_mapper,
        )

        pdf_id = str(uuid.uuid4())
        metadata = {
            "pdf_id": pdf_id,
            "provider": provider.name,
            "form_name": form_name,
            "generated_at": dt.datetime.now(dt.timezone.utc).isoformat(),
            "filename": output_filename(provider.name, filename),
        }

        if persist:
            metadata.update(self._store_pdf(pdf_id, metadata["filename"], result.filled_bytes))

        self._pdf_cache[pdf_id] = {
            "metadata": metadata,
            "bytes": result.filled_bytes,
        }
        return {"metadata": metadata, "result": result}

    def batch_fill(
        self,
        pdf_bytes: bytes,
        filename: str,
        provider_names: List[str],
        form_name: Optional[str] = None,
    ) -> Dict:
        """
        Fill one form for several providers and bundle the results in a ZIP.

        Providers are processed one after another; each fill loads its own copy
        of the document. A failing provider is reported and skipped.
        """
        analysis = self._require_fields(pdf_bytes)
        saved_mapping = self.get_saved_mapping(form_name) if form_name else {}

        buffer = io.BytesIO()
        summary = []
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for provider_name in provider_names:
                entry = {"provider": provider_name}
                try:
                    provider = self.get_provider(provider_name)
                    result = fill_pdf(
                        pdf_bytes,
                        analysis.fields,
                        provider,
                        custom_mappings=saved_mapping,
                        mapper=self.field_mapper,
                    )
                except PDFPrefillError as exc:
                    logger.error(f"Error filling PDF for {provider_name}: {exc}")
                    entry["error"] = exc.to_dict()
                    summary.append(entry)
                    continue
                except Exception as exc:
                    logger.error("Unexpected error filling PDF for %s: %s", provider_name, exc, exc_info=True)
                    entry["error"] = {"code": None, "message": str(exc)}
                    summary.append(entry)
                    continue

                entry_name = output_filename(provider.name, filename)
                archive.writestr(entry_name, result.filled_bytes)
                entry.update(
                    {
                        "filename": entry_name,
                        "filled": len(result.filled),
                        "skipped": len(result.skipped),
                        "total_fields": result.total_fields,
                    }
                )
                summary.append(entry)

        stem = filename[:-4] if filename.lower().endswith(".pdf") else filename
        logger.info(f"Batch filled '{filename}' for {len(provider_names)} providers")
        return {
            "filename": f"batch_{stem}_{len(provider_names)}_providers.zip",
            "zip_bytes": buffer.getvalue(),
            "results": summary,
        }

    def get_pdf(self, pdf_id: str) -> Optional[Dict]:
        entry = self._pdf_cache.get(pdf_id)
        if entry:
            return entry

        file_path = self.generated_dir / f"{pdf_id}.pdf"
        if file_path.exists():
            with file_path.open("rb") as f:
                pdf_bytes = f.read()
            metadata_path = file_path.with_suffix(".json")
            metadata = {}
            if metadata_path.exists():
                with metadata_path.open("r", encoding="utf-8") as f:
                    metadata = json.load(f)
            entry = {"metadata": metadata, "bytes": pdf_bytes}
            self._pdf_cache[pdf_id] = entry
            return entry

        if self.s3_bucket:
            prefix = f"{self.s3_prefix}{pdf_id}/"
            try:
                listing = self.s3.list_objects_v2(Bucket=self.s3_bucket, Prefix=prefix)
                contents = listing.get("Contents", [])
                if not contents:
                    return None
                key = contents[0]["Key"]
                obj = self.s3.get_object(Bucket=self.s3_bucket, Key=key)
                entry = {"metadata": {"s3_key": key}, "bytes": obj["Body"].read()}
                self._pdf_cache[pdf_id] = entry
                return entry
            except Exception as exc:  # pragma: no cover - network failure
                logger.error("Error fetching %s from S3: %s", pdf_id, exc)
                return None
        return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _store_pdf(self, pdf_id: str, filename: str, pdf_bytes: bytes) -> Dict:
        storage_meta: Dict[str, str] = {}
        safe_filename = filename or f"{pdf_id}.pdf"

        if self.s3_bucket:
            key = f"{self.s3_prefix}{pdf_id}/{safe_filename}"
            self.s3.put_object(Bucket=self.s3_bucket, Key=key, Body=pdf_bytes, ContentType="application/pdf")
            storage_meta.update({"s3_bucket": self.s3_bucket, "s3_key": key})
        else:
            target = self.generated_dir / f"{pdf_id}.pdf"
            with target.open("wb") as f:
                f.write(pdf_bytes)
            metadata_path = target.with_suffix(".json")
            with metadata_path.open("w", encoding="utf-8") as f:
                json.dump({"filename": safe_filename}, f, indent=2)
            storage_meta.update({"file_path": str(target)})
        return storage_meta
