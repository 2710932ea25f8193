"""
Client-side filtering for listing collections.

Category filtering and sorting happen on the server (see
``MarketplaceAPI.filter_and_sort``); what remains here is the status filter
and the free-text matcher. All functions are pure and never raise on
malformed listings.
"""

import logging
from typing import Iterable, Union

from models import ALL_STATUSES, Listing, ListingStatus, status_value

logger = logging.getLogger(__name__)

StatusFilter = Union[str, ListingStatus]


def filter_by_status(listings: Iterable[Listing], status_filter: StatusFilter) -> list[Listing]:
    """
    Keep listings whose status equals the filter exactly.
    "all" keeps everything; listings with an unknown status never match a
    specific filter.
    """
    wanted = status_value(status_filter)
    if wanted == ALL_STATUSES:
        return list(listings)
    return [l for l in listings if l.status is not None and l.status.value == wanted]


def filter_by_category_and_status(
    listings: Iterable[Listing],
    selected_categories: Iterable[str],
    status_filter: StatusFilter,
) -> list[Listing]:
    """
    Combine the category selection with the status filter.

    The category restriction is applied by the server fetch that produced
    ``listings``, so only the status filter runs here regardless of what is
    selected.
    """
    return filter_by_status(listings, status_filter)


def matches_query(listing: Listing, query: str) -> bool:
    """Case-insensitive substring match on name, description or address."""
    q = (query or "").strip().lower()
    if not q:
        return True
    for text in (listing.name, listing.description, listing.address):
        if q in (text or "").lower():
            return True
    return False


def text_search(listings: Iterable[Listing], query: str) -> list[Listing]:
    return [l for l in listings if matches_query(l, query)]


def apply_local_filters(
    listings: Iterable[Listing],
    status_filter: StatusFilter = ALL_STATUSES,
    query: str = "",
) -> list[Listing]:
    """Status filter, then text search. Input order is kept."""
    return text_search(filter_by_status(listings, status_filter), query)


def status_counts(listings: Iterable[Listing]) -> dict[str, int]:
    """Counts shown next to each status choice, plus the "all" total."""
    counts = {ALL_STATUSES: 0}
    counts.update({s.value: 0 for s in ListingStatus})
    for listing in listings:
        counts[ALL_STATUSES] += 1
        if listing.status is not None:
            counts[listing.status.value] += 1
    return counts
