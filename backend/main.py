import base64
import binascii
import logging

from dotenv import load_dotenv

load_dotenv(".env.local"); load_dotenv()  # also loads .env if present

import os  # noqa: E402
from typing import Dict, List, Optional  # noqa: E402

from fastapi import FastAPI, HTTPException, Response  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from pydantic import BaseModel  # noqa: E402

from provider_prefill import PDFPrefillError, ProviderPrefillService  # noqa: E402
from provider_prefill.models import ErrorCode  # noqa: E402

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)

app = FastAPI(title="Provider Form Pre-fill")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "*"
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

prefill_service = ProviderPrefillService()


class ProviderImportRequest(BaseModel):
    csv_text: str


class PDFAnalyzeRequest(BaseModel):
    pdf_base64: str


class PDFMappingRequest(BaseModel):
    pdf_base64: str
    provider_name: str


class PDFFillRequest(BaseModel):
    pdf_base64: str
    filename: str
    provider_name: str
    custom_mappings: Optional[Dict[str, str]] = None
    form_name: Optional[str] = None
    persist: bool = True


class PDFBatchFillRequest(BaseModel):
    pdf_base64: str
    filename: str
    provider_names: List[str]
    form_name: Optional[str] = None


class FormMappingSaveRequest(BaseModel):
    mapping: Dict[str, str]


def _decode_pdf(pdf_base64: str) -> bytes:
    try:
        return base64.b64decode(pdf_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail="pdf_base64 is not valid base64") from exc


def _http_error(exc: PDFPrefillError) -> HTTPException:
    status = 404 if exc.code == ErrorCode.PROVIDER_NOT_FOUND else 400
    return HTTPException(status_code=status, detail=exc.to_dict())


# --- Provider data --------------------------------------------------------------


@app.post("/providers/import")
def providers_import(req: ProviderImportRequest):
    parsed = prefill_service.import_providers_csv(req.csv_text)
    return {
        "provider_count": len(parsed.providers),
        "all_fields": parsed.all_fields,
        "last_updated": parsed.last_updated,
    }


@app.get("/providers")
def providers_list(state: Optional[str] = None):
    providers = prefill_service.list_providers(state=state)
    return {"providers": [provider.to_dict() for provider in providers]}


@app.get("/providers/status")
def providers_status():
    return prefill_service.provider_status()


@app.delete("/providers")
def providers_clear():
    prefill_service.clear_providers()
    return {"ok": True}


@app.get("/providers/states")
def providers_states():
    return {"states": prefill_service.state_counts()}


# --- PDF analysis + filling -----------------------------------------------------


@app.post("/pdf/analyze")
def pdf_analyze(req: PDFAnalyzeRequest):
    analysis = prefill_service.analyze_form(_decode_pdf(req.pdf_base64))
    return {"analysis": analysis.to_dict()}


@app.post("/pdf/mappings")
def pdf_mappings(req: PDFMappingRequest):
    try:
        result = prefill_service.suggest_mappings(_decode_pdf(req.pdf_base64), req.provider_name)
    except PDFPrefillError as exc:
        raise _http_error(exc) from exc
    return result


@app.post("/pdf/fill")
def pdf_fill(req: PDFFillRequest):
    try:
        result = prefill_service.fill_form(
            _decode_pdf(req.pdf_base64),
            req.filename,
            req.provider_name,
            custom_mappings=req.custom_mappings,
            form_name=req.form_name,
            persist=req.persist,
        )
    except PDFPrefillError as exc:
        raise _http_error(exc) from exc

    fill_result = result["result"]
    encoded = base64.b64encode(fill_result.filled_bytes).decode("ascii")
    return {
        "metadata": result["metadata"],
        "report": fill_result.to_dict(),
        "pdf_base64": encoded,
    }


@app.post("/pdf/batch-fill")
def pdf_batch_fill(req: PDFBatchFillRequest):
    try:
        result = prefill_service.batch_fill(
            _decode_pdf(req.pdf_base64),
            req.filename,
            req.provider_names,
            form_name=req.form_name,
        )
    except PDFPrefillError as exc:
        raise _http_error(exc) from exc
    return {
        "filename": result["filename"],
        "results": result["results"],
        "zip_base64": base64.b64encode(result["zip_bytes"]).decode("ascii"),
    }


@app.get("/pdf/{pdf_id}")
def pdf_get_pdf(pdf_id: str):
    """Download a generated PDF by ID"""
    record = prefill_service.get_pdf(pdf_id)
    if not record:
        raise HTTPException(status_code=404, detail="PDF not found")
    filename = record["metadata"].get("filename") or f"{pdf_id}.pdf"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return Response(content=record["bytes"], media_type="application/pdf", headers=headers)


# --- Reviewer mapping overrides -------------------------------------------------


@app.get("/forms/mappings")
def forms_list_mappings():
    return {"mappings": prefill_service.list_saved_mappings()}


@app.get("/forms/{form_name}/mappings")
def forms_get_mapping(form_name: str):
    return {"form_name": form_name, "mapping": prefill_service.get_saved_mapping(form_name)}


@app.post("/forms/{form_name}/mappings")
def forms_save_mapping(form_name: str, req: FormMappingSaveRequest):
    prefill_service.save_mapping(form_name, req.mapping)
    return {"ok": True}


@app.delete("/forms/{form_name}/mappings")
def forms_delete_mapping(form_name: str):
    if not prefill_service.delete_mapping(form_name):
        raise HTTPException(status_code=404, detail=f"No saved mapping for '{form_name}'")
    return {"ok": True}
