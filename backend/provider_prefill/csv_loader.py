"""
Provider Compliance Dashboard CSV loader.

The export is wide: providers are columns, attributes are rows. A few header
rows hold the (possibly multi-line) provider names, then the data section
starts at the first attribute row ("NOTES", "Address" or "Phone Number").
Header cells holding the "TERM>" marker are ignored when building names, and
a column whose name mentions "term" (terminated providers) is dropped.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Union

import pandas as pd

from .models import ParsedProviderData, ProviderRecord

logger = logging.getLogger(__name__)

DATA_SECTION_MARKERS = ("notes", "address", "phone number")
TERMINATED_MARKER = "TERM>"

US_STATES = (
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY", "DC",
)


def _read_table(csv_text: str) -> pd.DataFrame:
    # Rows are ragged; csv handles quoting, pandas pads the short rows.
    rows = list(csv.reader(io.StringIO(csv_text)))
    if not rows:
        return pd.DataFrame()
    table = pd.DataFrame(rows).fillna("")
    return table.apply(lambda column: column.map(lambda cell: str(cell).strip()))


def _find_data_start(table: pd.DataFrame) -> int:
    for row_index, first_cell in enumerate(table[0]):
        if first_cell.lower() in DATA_SECTION_MARKERS:
            return row_index
    return 0


def _provider_name(header: pd.DataFrame, column: int) -> str:
    parts = [
        cell for cell in header[column]
        if cell and TERMINATED_MARKER not in cell
    ]
    return re.sub(r"\s+", " ", " ".join(parts)).strip()


def parse_provider_csv(csv_text: str) -> ParsedProviderData:
    """Parse the wide-format compliance export into provider records."""
    table = _read_table(csv_text)
    if table.empty:
        return ParsedProviderData()

    data_start = _find_data_start(table)
    header = table.iloc[:data_start]
    body = table.iloc[data_start:]

    columns: List[int] = []
    names: List[str] = []
    for column in range(1, table.shape[1]):
        name = _provider_name(header, column)
        if name and "term" not in name.lower():
            columns.append(column)
            names.append(name)

    providers: List[ProviderRecord] = []
    all_fields = set()
    for column, name in zip(columns, names):
        data: Dict[str, str] = {}
        for field_name, value in zip(body[0], body[column]):
            if field_name and value:
                data[field_name] = value
                all_fields.add(field_name)
        if data:
            providers.append(ProviderRecord(name=name, data=data))

    logger.info(f"Parsed {len(providers)} providers with {len(all_fields)} distinct fields")
    return ParsedProviderData(providers=providers, all_fields=sorted(all_fields))


def parse_provider_csv_file(path: Union[str, Path]) -> ParsedProviderData:
    with Path(path).open("r", encoding="utf-8-sig", newline="") as f:
        return parse_provider_csv(f.read())


def licensed_states(provider: ProviderRecord) -> List[str]:
    """States where the provider has a populated license column ("TX" or "TX License ...")."""
    return [
        state
        for state in US_STATES
        if any(
            (key == state or key.startswith(state + " ")) and provider.value_for(key)
            for key in provider.data
        )
    ]


def filter_by_state(providers: Iterable[ProviderRecord], state: str) -> List[ProviderRecord]:
    state = state.strip().upper()
    return [provider for provider in providers if state in licensed_states(provider)]


def license_state_counts(providers: Iterable[ProviderRecord]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for provider in providers:
        for state in licensed_states(provider):
            counts[state] = counts.get(state, 0) + 1
    return dict(sorted(counts.items()))
