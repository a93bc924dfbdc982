import io
import os
import tempfile
from typing import Dict, List, Optional

import pytest
from pypdf import PdfWriter
from pypdf.generic import (
    ArrayObject,
    DecodedStreamObject,
    DictionaryObject,
    FloatObject,
    NameObject,
    NumberObject,
    TextStringObject,
)

# main.py builds its service at import time; keep it out of the package dir.
os.environ.setdefault("PROVIDER_PREFILL_BASE_DIR", tempfile.mkdtemp(prefix="provider-prefill-"))

from provider_prefill.models import ProviderRecord  # noqa: E402
from provider_prefill.settings import MatcherSettings, PrefillSettings  # noqa: E402

FF_RADIO = 1 << 15
FF_COMBO = 1 << 17
FF_EDIT = 1 << 18

DEFAULT_APPEARANCE = "/Helv 0 Tf 0 g"

XFA_PACKET = (
    b'<xdp:xdp xmlns:xdp="http://ns.adobe.com/xdp/">'
    b'<template xmlns="http://www.xfa.org/schema/xfa-template/3.3/">'
    b'<subform name="form1"/></template></xdp:xdp>'
)


def _appearance(on_state: str) -> DictionaryObject:
    normal = DictionaryObject()
    normal[NameObject(on_state)] = DecodedStreamObject()
    normal[NameObject("/Off")] = DecodedStreamObject()
    return DictionaryObject({NameObject("/N"): normal})


def _default_resources() -> DictionaryObject:
    helvetica = DictionaryObject({
        NameObject("/Type"): NameObject("/Font"),
        NameObject("/Subtype"): NameObject("/Type1"),
        NameObject("/BaseFont"): NameObject("/Helvetica"),
        NameObject("/Encoding"): NameObject("/WinAnsiEncoding"),
    })
    return DictionaryObject({
        NameObject("/Font"): DictionaryObject({NameObject("/Helv"): helvetica}),
    })


def _field_dict(entry: Dict, index: int) -> DictionaryObject:
    kind = entry.get("type", "text")
    top = 740 - index * 40
    field = DictionaryObject({
        NameObject("/Type"): NameObject("/Annot"),
        NameObject("/Subtype"): NameObject("/Widget"),
        NameObject("/T"): TextStringObject(entry["name"]),
        NameObject("/F"): NumberObject(4),
        NameObject("/Rect"): ArrayObject(
            [FloatObject(50), FloatObject(top), FloatObject(300), FloatObject(top + 20)]
        ),
    })

    if kind == "text":
        field[NameObject("/FT")] = NameObject("/Tx")
        field[NameObject("/DA")] = TextStringObject(DEFAULT_APPEARANCE)
        if entry.get("value"):
            field[NameObject("/V")] = TextStringObject(entry["value"])
    elif kind == "checkbox":
        on_state = entry.get("on_state", "/Yes")
        field[NameObject("/FT")] = NameObject("/Btn")
        field[NameObject("/AP")] = _appearance(on_state)
        field[NameObject("/V")] = NameObject("/Off")
        field[NameObject("/AS")] = NameObject("/Off")
    elif kind == "radio":
        field[NameObject("/FT")] = NameObject("/Btn")
        field[NameObject("/Ff")] = NumberObject(FF_RADIO)
    elif kind == "dropdown":
        flags = FF_COMBO | (FF_EDIT if entry.get("editable") else 0)
        field[NameObject("/FT")] = NameObject("/Ch")
        field[NameObject("/Ff")] = NumberObject(flags)
        field[NameObject("/DA")] = TextStringObject(DEFAULT_APPEARANCE)
        options = []
        for option in entry.get("options", []):
            if isinstance(option, tuple):
                options.append(ArrayObject([TextStringObject(option[0]), TextStringObject(option[1])]))
            else:
                options.append(TextStringObject(option))
        field[NameObject("/Opt")] = ArrayObject(options)
    elif kind == "listbox":
        field[NameObject("/FT")] = NameObject("/Ch")
        field[NameObject("/Opt")] = ArrayObject([TextStringObject("A")])
    else:
        raise ValueError(f"unknown field type {kind}")
    return field


def build_form_pdf(fields: List[Dict], xfa: Optional[bytes] = None) -> bytes:
    """
    Build a one-page AcroForm PDF.

    Each entry in `fields` is a dict with `name` and `type` (text, checkbox,
    radio, dropdown, listbox) plus optional `value`, `options`, `editable`
    and `on_state`. A name containing "." becomes a parent/child hierarchy.
    """
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    page = writer.pages[0]

    annots = ArrayObject()
    top_level = ArrayObject()
    parents: Dict[str, object] = {}

    for index, entry in enumerate(fields):
        parent_name, _, partial = entry["name"].rpartition(".")
        field = _field_dict({**entry, "name": partial}, index)
        field[NameObject("/P")] = page.indirect_reference
        field_ref = writer._add_object(field)
        annots.append(field_ref)

        if parent_name:
            parent_ref = parents.get(parent_name)
            if parent_ref is None:
                parent = DictionaryObject({
                    NameObject("/T"): TextStringObject(parent_name),
                    NameObject("/Kids"): ArrayObject(),
                })
                parent_ref = writer._add_object(parent)
                parents[parent_name] = parent_ref
                top_level.append(parent_ref)
            field[NameObject("/Parent")] = parent_ref
            parent_ref.get_object()["/Kids"].append(field_ref)
        else:
            top_level.append(field_ref)

    if annots:
        page[NameObject("/Annots")] = annots

    if fields or xfa is not None:
        acro_form = DictionaryObject({
            NameObject("/Fields"): top_level,
            NameObject("/DA"): TextStringObject(DEFAULT_APPEARANCE),
            NameObject("/DR"): _default_resources(),
        })
        if xfa is not None:
            packet = DecodedStreamObject()
            packet.set_data(xfa)
            acro_form[NameObject("/XFA")] = writer._add_object(packet)
        writer.root_object[NameObject("/AcroForm")] = writer._add_object(acro_form)

    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def jane_doe() -> ProviderRecord:
    return ProviderRecord(
        name="Dr. Jane Doe",
        data={
            "NPI #": "1234567890",
            "Phone Number": "555-123-4567",
            "Email": "",
        },
    )


@pytest.fixture
def jane_doe_pdf() -> bytes:
    return build_form_pdf([
        {"name": "NPI Number", "type": "text"},
        {"name": "Phone", "type": "text"},
        {"name": "Clinic Name", "type": "text"},
    ])


@pytest.fixture
def settings(tmp_path) -> PrefillSettings:
    return PrefillSettings(base_dir=tmp_path, matcher=MatcherSettings())


SAMPLE_CSV = """\
,Dr. Jane,Dr. John,TERM>
,Doe,Smith,Terminated Person
NOTES,Prefers email,,
Address,1 Main St,2 Oak Ave,9 Gone Rd
NPI #,1234567890,9876543210,1111111111
Phone Number,555-123-4567,555-987-6543,
TX License,L-100,,
CA,,C-200,
"""


@pytest.fixture
def sample_csv() -> str:
    return SAMPLE_CSV
