"""
Domain keyword rules layered on top of plain label similarity.

Credentialing forms and compliance exports rarely agree on wording ("Mailing
Address" vs "Address", "NPI Number" vs "NPI #"), so pairs that share a
category get a floor score. Two rules pull the other way: email and phone
columns never pair with each other, and organization-level PDF fields are
never auto-filled because provider records carry no organization data.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple

from .settings import DEFAULT_CATEGORY_BOOST

CATEGORY_ALIASES: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "address": ("street", "addr", "mailing", "physical", "residence", "location"),
    "phone": ("tel", "telephone", "mobile", "cell", "contact", "fax"),
    "email": ("e-mail", "mail", "electronic"),
    "npi": ("npi number", "national provider", "provider id", "npi #", "npi#"),
    "dea": ("dea number", "dea license", "drug enforcement", "dea #", "dea#"),
    "license": ("license number", "state license", "medical license", "lic", "license #"),
    "name": ("full name", "provider name", "physician", "aprn", "nurse"),
    "first": ("first name", "fname", "given name", "first"),
    "last": ("last name", "lname", "surname", "family name", "last"),
    "zip": ("postal", "zipcode", "zip code", "zip"),
    "state": ("st", "province"),
    "city": ("town", "municipality"),
    "ssn": ("social security", "ss#", "ssn", "social"),
    "dob": ("date of birth", "birth date", "birthday", "dob"),
})

# Ordered by precedence: a label that reads as both (e.g. "Contact Email")
# counts as the first channel listed.
CONFLICTING_CATEGORIES: Tuple[str, ...] = ("email", "phone")

EXCLUDED_FIELD_KEYWORDS: Tuple[str, ...] = (
    "organization",
    "clinic",
    "facility",
    "hospital",
    "practice",
    "group",
    "company",
    "employer",
    "business",
    "entity",
    "firm",
    "agency",
    "institution",
    "corp",
    "llc",
    "inc",
    "pllc",
)


class CategoryMatcher:
    """Applies the category boost, conflict veto and organization exclusion."""

    def __init__(
        self,
        boost: float = DEFAULT_CATEGORY_BOOST,
        aliases: Mapping[str, Tuple[str, ...]] = CATEGORY_ALIASES,
        excluded_keywords: Tuple[str, ...] = EXCLUDED_FIELD_KEYWORDS,
    ):
        self.boost_score = boost
        self.aliases = aliases
        self.excluded_keywords = excluded_keywords

    def categories_for(self, label: str) -> FrozenSet[str]:
        """Return every category whose keyword or alias occurs in `label`."""
        lowered = (label or "").lower()
        return frozenset(
            category
            for category, aliases in self.aliases.items()
            if category in lowered or any(alias in lowered for alias in aliases)
        )

    def boost(self, pdf_field: str, provider_field: str) -> float:
        """Return the boost score when both labels share a category, else 0."""
        if self.categories_for(pdf_field) & self.categories_for(provider_field):
            return self.boost_score
        return 0.0

    def contact_channel(self, label: str) -> Optional[str]:
        categories = self.categories_for(label)
        for channel in CONFLICTING_CATEGORIES:
            if channel in categories:
                return channel
        return None

    def has_conflict(self, pdf_field: str, provider_field: str) -> bool:
        """True when one label is an email column and the other a phone column."""
        pdf_channel = self.contact_channel(pdf_field)
        provider_channel = self.contact_channel(provider_field)
        return (
            pdf_channel is not None
            and provider_channel is not None
            and pdf_channel != provider_channel
        )

    def is_excluded_field(self, pdf_field: str) -> bool:
        lowered = (pdf_field or "").lower()
        return any(keyword in lowered for keyword in self.excluded_keywords)
