"""
Autocomplete suggestions for the listing search box.

Suggestions are built from the listings currently held by the client, in a
fixed order: listing matches, then locations, then service categories.
The combined list is truncated after that ordering is applied.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from models import Listing

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 8
MIN_QUERY_LENGTH = 2
DESCRIPTION_PREVIEW = 50

# Fixed service vocabulary offered as category suggestions
CATEGORY_KEYWORDS = (
    "cleaning", "tutoring", "gardening", "cooking", "tech", "repair",
    "assembly", "painting", "moving", "delivery", "pet", "babysitting",
)


class SuggestionKind(str, Enum):
    LISTING = "listing"
    LOCATION = "location"
    CATEGORY = "category"


@dataclass
class Suggestion:
    kind: SuggestionKind
    text: str
    listid: Optional[int] = None
    category: Optional[str] = None
    location: Optional[str] = None


def location_of(address: str) -> str:
    """Last comma-separated segment of an address, e.g. the city."""
    segment = (address or "").split(",")[-1].strip()
    return segment or (address or "")


def generate_suggestions(
    listings: Iterable[Listing],
    query: str,
    limit: int = MAX_SUGGESTIONS,
    min_length: int = MIN_QUERY_LENGTH,
) -> list[Suggestion]:
    q = (query or "").strip().lower()
    if len(q) < min_length:
        return []

    listings = list(listings)
    suggestions: list[Suggestion] = []

    # Listings: one suggestion per (case-insensitive) name
    seen_names: set[str] = set()
    for listing in listings:
        name = listing.name or ""
        description = listing.description or ""
        key = name.lower()
        if key in seen_names:
            continue
        if q in name.lower():
            text = name
        elif q in description.lower():
            text = f"{name} - {description[:DESCRIPTION_PREVIEW]}..."
        else:
            continue
        seen_names.add(key)
        suggestions.append(Suggestion(SuggestionKind.LISTING, text, listid=listing.listid))

    # Locations
    seen_locations: set[str] = set()
    for listing in listings:
        address = listing.address or ""
        if q not in address.lower():
            continue
        location = location_of(address)
        if location.lower() in seen_locations:
            continue
        seen_locations.add(location.lower())
        suggestions.append(Suggestion(SuggestionKind.LOCATION, f"Near {location}", location=location))

    # Categories: keyword must contain the query and appear in some listing
    seen_keywords: set[str] = set()
    for keyword in CATEGORY_KEYWORDS:
        if q not in keyword or keyword in seen_keywords:
            continue
        if any(
            keyword in (l.name or "").lower() or keyword in (l.description or "").lower()
            for l in listings
        ):
            seen_keywords.add(keyword)
            suggestions.append(Suggestion(
                SuggestionKind.CATEGORY,
                f"{keyword.capitalize()} services",
                category=keyword,
            ))

    return suggestions[:limit]


def search_term_for(suggestion: Suggestion) -> str:
    """The query that replaces the search box contents when a suggestion is picked."""
    if suggestion.kind == SuggestionKind.LISTING:
        return suggestion.text.split(" - ")[0] if " - " in suggestion.text else suggestion.text
    if suggestion.kind == SuggestionKind.CATEGORY:
        return suggestion.category or suggestion.text
    return suggestion.location or suggestion.text
