"""
Provider data and mapping storage for the pre-fill service.

Persists the parsed compliance export (with a last-updated stamp) and
reviewer mapping overrides per form as JSON under `provider_data/` inside the
configured base directory.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from .models import ParsedProviderData

logger = logging.getLogger(__name__)

PROVIDERS_FILE = "providers.json"


def _safe_stem(form_name: str) -> str:
    stem = re.sub(r"[^A-Za-z0-9._-]", "_", form_name.strip())
    return stem.strip(".") or "form"


class ProviderStore:
    """Handles the provider data file and per-form mapping overrides."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.data_dir = self.base_dir / "provider_data"
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def providers_file(self) -> Path:
        return self.data_dir / PROVIDERS_FILE

    def get_mappings_dir(self) -> Path:
        mappings_dir = self.data_dir / "mappings"
        mappings_dir.mkdir(parents=True, exist_ok=True)
        return mappings_dir

    # ------------------------------------------------------------------
    # Provider data
    # ------------------------------------------------------------------
    def save_providers(self, parsed: ParsedProviderData) -> ParsedProviderData:
        parsed.last_updated = datetime.now().isoformat()
        with self.providers_file.open("w", encoding="utf-8") as f:
            json.dump(parsed.to_dict(), f, indent=2)
        logger.info("Saved %d providers to %s", len(parsed.providers), self.providers_file)
        return parsed

    def load_providers(self) -> Optional[ParsedProviderData]:
        if not self.providers_file.exists():
            return None
        try:
            with self.providers_file.open("r", encoding="utf-8") as f:
                return ParsedProviderData.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as exc:
            logger.error("Error loading provider data from %s: %s", self.providers_file, exc)
        return None

    def clear_providers(self) -> None:
        if self.providers_file.exists():
            self.providers_file.unlink()

    def has_providers(self) -> bool:
        return self.providers_file.exists()

    # ------------------------------------------------------------------
    # Mapping overrides
    # ------------------------------------------------------------------
    def save_mapping(self, form_name: str, mapping: Dict[str, str]) -> None:
        mapping_file = self.get_mappings_dir() / f"{_safe_stem(form_name)}.json"
        with mapping_file.open("w", encoding="utf-8") as f:
            json.dump(mapping, f, indent=2)

    def load_mapping(self, form_name: str) -> Optional[Dict[str, str]]:
        mapping_file = self.get_mappings_dir() / f"{_safe_stem(form_name)}.json"
        if mapping_file.exists():
            try:
                with mapping_file.open("r", encoding="utf-8") as f:
                    return json.load(f)
            except (OSError, ValueError) as exc:
                logger.error("Error loading mapping for %s: %s", form_name, exc)
        return None

    def list_mappings(self) -> Dict[str, Dict[str, str]]:
        mappings: Dict[str, Dict[str, str]] = {}
        for mapping_file in sorted(self.get_mappings_dir().glob("*.json")):
            try:
                with mapping_file.open("r", encoding="utf-8") as f:
                    mappings[mapping_file.stem] = json.load(f)
            except (OSError, ValueError) as exc:
                logger.error("Error listing mapping %s: %s", mapping_file.name, exc)
        return mappings

    def delete_mapping(self, form_name: str) -> bool:
        mapping_file = self.get_mappings_dir() / f"{_safe_stem(form_name)}.json"
        if mapping_file.exists():
            mapping_file.unlink()
            return True
        return False
