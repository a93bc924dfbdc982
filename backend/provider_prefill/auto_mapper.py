"""
Automatic Field Mapping Engine

Matches PDF form fields to provider data columns using:
1. Label similarity (exact / containment / word overlap)
2. Category keyword boosts (address, phone, npi, ...)
3. Conflict and exclusion rules (email vs phone, organization fields)

The result is deterministic and explainable: every mapping carries the score
that produced it, and reviewers can override any of them before filling.
"""

from __future__ import annotations

import logging
from functools import reduce
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .categories import CategoryMatcher
from .models import FieldMapping, MappingCoverage, PDFFieldDescriptor, ProviderRecord
from .settings import MatcherSettings
from .similarity import similarity

logger = logging.getLogger(__name__)

Candidate = Tuple[str, float]
_NO_MATCH: Candidate = ("", 0.0)


def _keep_best(best: Candidate, candidate: Candidate) -> Candidate:
    # Strictly greater: on a tie the first provider field seen wins.
    return candidate if candidate[1] > best[1] else best


class ProviderFieldMapper:
    """Maps PDF form fields onto provider data columns."""

    def __init__(
        self,
        settings: Optional[MatcherSettings] = None,
        category_matcher: Optional[CategoryMatcher] = None,
    ):
        self.settings = settings or MatcherSettings()
        self.categories = category_matcher or CategoryMatcher(boost=self.settings.category_boost)

    @property
    def threshold(self) -> float:
        return self.settings.confidence_threshold

    def score(self, pdf_field: str, provider_field: str) -> float:
        """Pairwise score: label similarity raised to the category boost when one applies."""
        return max(similarity(pdf_field, provider_field), self.categories.boost(pdf_field, provider_field))

    def is_excluded(self, pdf_field: str) -> bool:
        return self.categories.is_excluded_field(pdf_field)

    def find_best_match(self, pdf_field: str, provider: ProviderRecord) -> Candidate:
        """Return (provider field, score) for the best non-vetoed candidate with data."""
        candidates = (
            (provider_field, self.score(pdf_field, provider_field))
            for provider_field in provider.populated_fields()
            if not self.categories.has_conflict(pdf_field, provider_field)
        )
        return reduce(_keep_best, candidates, _NO_MATCH)

    def map_field(self, pdf_field: str, provider: ProviderRecord) -> FieldMapping:
        if self.is_excluded(pdf_field):
            logger.debug("Skipping organization/facility field '%s'", pdf_field)
            return FieldMapping(pdf_field=pdf_field, provider_field="", confidence=0.0)

        provider_field, best_score = self.find_best_match(pdf_field, provider)
        if provider_field and best_score >= self.threshold:
            return FieldMapping(
                pdf_field=pdf_field,
                provider_field=provider_field,
                confidence=best_score,
                suggested_value=provider.value_for(provider_field),
            )
        return FieldMapping(pdf_field=pdf_field, provider_field="", confidence=best_score)

    def map_fields(
        self,
        pdf_fields: Iterable[PDFFieldDescriptor],
        provider: ProviderRecord,
    ) -> List[FieldMapping]:
        """
        Map every PDF field to its best provider column.

        All fields are returned, including low-confidence ones, so a reviewer
        can correct them manually. Sorted by descending confidence; ties keep
        extraction order.
        """
        mappings = [self.map_field(descriptor.name, provider) for descriptor in pdf_fields]
        mappings.sort(key=lambda mapping: mapping.confidence, reverse=True)

        confident = sum(1 for mapping in mappings if mapping.provider_field)
        logger.info(
            f"Mapped {confident}/{len(mappings)} PDF fields for provider '{provider.name}' "
            f"(threshold {self.threshold:.2f})"
        )
        return mappings


def merge_mappings(
    auto_mappings: Iterable[FieldMapping],
    custom_mappings: Optional[Mapping[str, str]],
    threshold: float,
) -> Tuple[Dict[str, str], Set[str]]:
    """
    Build the PDF field -> provider field mapping actually used for filling.

    Confident auto mappings come first; reviewer overrides always win. A blank
    override clears the field. Returns the mapping and the set of cleared
    PDF fields.
    """
    effective: Dict[str, str] = {}
    for mapping in auto_mappings:
        if mapping.provider_field and mapping.confidence >= threshold:
            effective[mapping.pdf_field] = mapping.provider_field

    cleared: Set[str] = set()
    for pdf_field, provider_field in (custom_mappings or {}).items():
        if provider_field and provider_field.strip():
            effective[pdf_field] = provider_field
        else:
            effective.pop(pdf_field, None)
            cleared.add(pdf_field)
    return effective, cleared


def summarize_coverage(mappings: Iterable[FieldMapping], provider: ProviderRecord) -> MappingCoverage:
    """Count fields that will fill, have a mapping but no data, or have no mapping."""
    will_fill = missing_data = unmapped = total = 0
    for mapping in mappings:
        total += 1
        if not mapping.provider_field:
            unmapped += 1
        elif provider.value_for(mapping.provider_field):
            will_fill += 1
        else:
            missing_data += 1
    return MappingCoverage(
        will_fill=will_fill,
        missing_data=missing_data,
        unmapped=unmapped,
        total_fields=total,
    )
