"""
Listings view-model.

Holds the state behind the listings screen (collection, filters, query,
sort, loading/notice flags) and is the only place that changes it. The
server returns the authoritative filtered and sorted set; the client adds
the status filter and text matcher on top, and patches single listings
after assignment actions instead of reloading everything.

Refreshes may overlap (threads, or a slow request followed by a fast one).
Each refresh takes a token from a monotonic counter and its result is only
applied while that token is still the latest and the view is still open.
Listings patched after the refresh was issued are re-patched onto its
result, so a late fetch never rolls back a confirmed assignment.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from api_client import ANONYMOUS_UID, ListingQuery, MarketplaceAPI
from config import SearchSettings
from debounce import Debouncer
from errors import MarketplaceError
from filters import apply_local_filters, status_counts
from geolocation import FALLBACK_LOCATION, Location
from models import (
    ALL_STATUSES,
    CategoryRegistry,
    Listing,
    Review,
    SortOption,
    User,
    status_value,
)
from suggestions import Suggestion, generate_suggestions, search_term_for

logger = logging.getLogger(__name__)


def apply_patch(listings: list[Listing], listid: int, updated: Listing) -> list[Listing]:
    """
    Replace the entry with ``listid`` by ``updated``.

    Order and the identity of every other entry are kept. An unknown id
    leaves the collection as it was; patches never insert.
    """
    return [updated if l.listid == listid else l for l in listings]


# ── State ───────────────────────────────────────────────────────────────────

@dataclass
class ViewState:
    listings: list = field(default_factory=list)
    categories: CategoryRegistry = field(default_factory=CategoryRegistry)
    selected_categories: list = field(default_factory=list)
    search_query: str = ""
    status_filter: str = ALL_STATUSES
    sort_option: SortOption = SortOption.DEFAULT
    loading: bool = False
    notice: Optional[str] = None
    expanded_listing: Optional[int] = None
    reviews: dict = field(default_factory=dict)       # listid -> list[Review]
    user_names: dict = field(default_factory=dict)    # uid -> name

    def to_dict(self) -> dict:
        visible = apply_local_filters(self.listings, self.status_filter, self.search_query)
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "filters": {
                "categories": list(self.selected_categories),
                "status": status_value(self.status_filter),
                "sort": self.sort_option.value,
                "search": self.search_query,
            },
            "status_counts": status_counts(self.listings),
            "total_listings": len(self.listings),
            "listings": [l.to_dict() for l in visible],
            "notice": self.notice,
        }


# ── View-model ──────────────────────────────────────────────────────────────

class ListingsViewModel:
    def __init__(
        self,
        api: MarketplaceAPI,
        viewer: Optional[User] = None,
        location: Location = FALLBACK_LOCATION,
        settings: Optional[SearchSettings] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api = api
        self.viewer = viewer
        self.location = location
        self.settings = settings or SearchSettings()
        self.state = ViewState()
        self.debouncer = Debouncer(self._dispatch_query, wait=self.settings.debounce_seconds, clock=clock)
        self._executor = executor
        self._lock = threading.RLock()
        self._latest_token = 0
        self._in_flight = 0
        self._open = True
        # Patches confirmed by the server, replayed onto fetches issued before them
        self._mutation_seq = 0
        self._patches: list[tuple[int, int, Listing]] = []
        self._refresh_notice = False

    # Loading flag and liveness

    @contextmanager
    def _busy(self):
        with self._lock:
            self._in_flight += 1
            self.state.loading = True
        try:
            yield
        finally:
            with self._lock:
                self._in_flight -= 1
                self.state.loading = self._in_flight > 0

    def _notify(self, message: Optional[str], from_refresh: bool = False) -> None:
        with self._lock:
            if self._open:
                self.state.notice = message
                self._refresh_notice = from_refresh

    @property
    def is_open(self) -> bool:
        return self._open

    def close(self) -> None:
        """Leave the view: pending searches are dropped and late responses ignored."""
        with self._lock:
            self._open = False
        self.debouncer.cancel()
        if self._executor is not None:
            self._executor.shutdown(wait=False)

    # Fetching

    def build_query(self) -> ListingQuery:
        with self._lock:
            return ListingQuery(
                latitude=self.location.latitude,
                longitude=self.location.longitude,
                categories=list(self.state.selected_categories),
                status=status_value(self.state.status_filter),
                sort=self.state.sort_option,
                search=self.state.search_query,
                uid=self.viewer.uid if self.viewer else ANONYMOUS_UID,
            )

    def load(self) -> bool:
        """Initial load: category vocabulary, then the listing set."""
        with self._busy():
            try:
                categories = self.api.list_categories()
            except MarketplaceError as e:
                logger.error(f"Error fetching task categories: {e}")
                self._notify("Error connecting to backend")
            else:
                with self._lock:
                    if self._open:
                        self.state.categories = categories
        return self.refresh()

    def refresh(self) -> bool:
        """
        Fetch the filtered, sorted set for the current state.

        Returns True if the response was applied. On failure, or when a newer
        refresh has been issued in the meantime, the collection is untouched.
        """
        with self._lock:
            if not self._open:
                return False
            self._latest_token += 1
            token = self._latest_token
            issued_at = self._mutation_seq
        query = self.build_query()

        with self._busy():
            try:
                listings = self.api.filter_and_sort(query)
            except MarketplaceError as e:
                logger.error(f"Error fetching listings: {e}")
                with self._lock:
                    if token == self._latest_token:
                        self._notify("Error connecting to backend", from_refresh=True)
                return False

            with self._lock:
                if not self._open:
                    logger.debug(f"View closed; dropping response #{token}")
                    return False
                if token != self._latest_token:
                    logger.debug(f"Dropping stale response #{token} (latest #{self._latest_token})")
                    return False
                for seq, listid, updated in self._patches:
                    if seq > issued_at:
                        listings = apply_patch(listings, listid, updated)
                self._patches = []
                self.state.listings = listings
                if self._refresh_notice:
                    self.state.notice = None
                    self._refresh_notice = False
                return True

    def refresh_async(self) -> Future:
        if not self._open:
            done: Future = Future()
            done.set_result(False)
            return done
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=4)
        return self._executor.submit(self.refresh)

    # Filters

    def configure(
        self,
        categories: Optional[list] = None,
        status_filter: Optional[str] = None,
        sort: Optional[str] = None,
        search: Optional[str] = None,
    ) -> None:
        """Set several filters at once without fetching (e.g. before ``load``)."""
        with self._lock:
            if categories is not None:
                self.state.selected_categories = list(categories)
            if status_filter is not None:
                self.state.status_filter = status_value(status_filter)
            if sort is not None:
                self.state.sort_option = SortOption.parse(sort)
            if search is not None:
                self.state.search_query = search.strip()

    def toggle_category(self, name: str) -> bool:
        with self._lock:
            selected = self.state.selected_categories
            if name in selected:
                self.state.selected_categories = [c for c in selected if c != name]
            else:
                self.state.selected_categories = selected + [name]
        return self.refresh()

    def clear_categories(self) -> bool:
        with self._lock:
            self.state.selected_categories = []
        return self.refresh()

    def set_status_filter(self, status_filter: str) -> bool:
        with self._lock:
            self.state.status_filter = status_value(status_filter)
        return self.refresh()

    def set_sort(self, option: str) -> bool:
        with self._lock:
            self.state.sort_option = SortOption.parse(option)
        return self.refresh()

    # Search

    def set_query(self, text: str) -> list[Suggestion]:
        """A keystroke: arm the debounced search and return fresh suggestions."""
        self.debouncer.submit(text)
        return self.suggestions(text)

    def poll(self) -> bool:
        """Run the debounced search if its quiet period has elapsed."""
        return self.debouncer.fire_due()

    def submit_query(self, text: str) -> bool:
        """Search right away (enter key, suggestion pick, clear)."""
        self.debouncer.cancel()
        return self._dispatch_query(text)

    def pick_suggestion(self, suggestion: Suggestion) -> str:
        term = search_term_for(suggestion)
        self.submit_query(term)
        return term

    def _dispatch_query(self, text: str) -> bool:
        with self._lock:
            self.state.search_query = (text or "").strip()
        return self.refresh()

    def suggestions(self, text: str) -> list[Suggestion]:
        with self._lock:
            listings = list(self.state.listings)
        return generate_suggestions(
            listings, text,
            limit=self.settings.suggestion_limit,
            min_length=self.settings.min_query_length,
        )

    def visible_listings(self) -> list[Listing]:
        with self._lock:
            return apply_local_filters(
                self.state.listings, self.state.status_filter, self.state.search_query,
            )

    # Assignment actions: server mutation, re-read, patch

    def assign(self, listid: int) -> bool:
        uid = self._viewer_uid("take a task")
        if uid is None:
            return False
        return self._mutate(listid, lambda: self.api.assign(listid, uid))

    def unassign(self, listid: int) -> bool:
        uid = self._viewer_uid("drop a task")
        if uid is None:
            return False
        return self._mutate(listid, lambda: self.api.unassign(listid, uid))

    def complete(self, listid: int) -> bool:
        uid = self._viewer_uid("complete a task")
        if uid is None:
            return False
        return self._mutate(listid, lambda: self.api.complete(listid, uid))

    def _viewer_uid(self, action: str) -> Optional[int]:
        if self.viewer is None:
            self._notify(f"Log in to {action}.")
            return None
        return self.viewer.uid

    def _mutate(self, listid: int, action: Callable[[], str]) -> bool:
        with self._busy():
            try:
                message = action()
                updated = self.api.get_listing(listid)
            except MarketplaceError as e:
                logger.error(f"Action on listing {listid} failed: {e}")
                self._notify(e.message or f"Could not update listing {listid}.")
                return False
            with self._lock:
                if not self._open:
                    return False
                self._mutation_seq += 1
                self._patches.append((self._mutation_seq, listid, updated))
                self.state.listings = apply_patch(self.state.listings, listid, updated)
                self._notify(message or None)
        logger.info(f"Listing {listid} is now {status_value(updated.status)}")
        return True

    # Listing details

    def expand(self, listid: int) -> Optional[list[Review]]:
        """Toggle the expanded listing; reviews are loaded once per listing."""
        with self._lock:
            if self.state.expanded_listing == listid:
                self.state.expanded_listing = None
                return None
            self.state.expanded_listing = listid
            cached = self.state.reviews.get(listid)
        if cached is not None:
            return cached

        try:
            reviews = self.api.list_reviews(listid)
        except MarketplaceError as e:
            logger.error(f"Error fetching reviews: {e}")
            return None
        for uid in {u for r in reviews for u in (r.reviewer_uid, r.reviewee_uid) if u}:
            self.user_name(uid)
        with self._lock:
            self.state.reviews[listid] = reviews
        return reviews

    def user_name(self, uid: int) -> str:
        with self._lock:
            if uid in self.state.user_names:
                return self.state.user_names[uid]
        try:
            name = self.api.user_name(uid)
        except MarketplaceError as e:
            logger.error(f"Error fetching name for UID {uid}: {e}")
            return f"User {uid}"
        with self._lock:
            self.state.user_names[uid] = name
        return name
