"""
HTTP clients for the marketplace backend and the address geocoder.

Every data operation of the client is a request against the marketplace
backend. Failures are raised as ``NetworkFailure`` (no usable response) or
``ServerRejection`` (non-2xx); callers decide how to surface them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import requests

from config import BackendConfig, GeoConfig
from errors import NetworkFailure, ServerRejection
from models import (
    ALL_STATUSES,
    AssignedUser,
    CategoryRegistry,
    Listing,
    Review,
    SortOption,
    User,
    parse_listings,
    status_value,
)

logger = logging.getLogger(__name__)

ANONYMOUS_UID = 0


# ── Query for /listings/filterAndSort ───────────────────────────────────────

@dataclass
class ListingQuery:
    """Everything the server needs to return the filtered, sorted listing set."""
    latitude: float
    longitude: float
    categories: list = field(default_factory=list)
    status: str = ALL_STATUSES
    sort: SortOption = SortOption.DEFAULT
    search: str = ""
    uid: int = ANONYMOUS_UID

    def to_params(self) -> list[tuple[str, Any]]:
        """Query pairs; ``categories`` repeats once per selected category."""
        params: list[tuple[str, Any]] = [("categories", c) for c in self.categories]
        params += [
            ("status", status_value(self.status)),
            ("sort", SortOption.parse(self.sort).value),
            ("search", self.search),
            ("uid", self.uid),
            ("latitude", self.latitude),
            ("longitude", self.longitude),
        ]
        return params


# ── Base Client ─────────────────────────────────────────────────────────────

class BaseClient:
    """Shared session handling and error translation."""

    source_name = "api"

    def __init__(self, base_url: str, timeout: float = 15, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json_body: Any = None,
        expect_json: bool = True,
    ) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"[{self.source_name}] {method} {url}")
        try:
            resp = self.session.request(method, url, params=params, json=json_body, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            message = _error_message(e.response)
            logger.error(f"[{self.source_name}] HTTP {e.response.status_code}: {message}")
            raise ServerRejection(message, e.response.status_code) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"[{self.source_name}] Request failed: {e}")
            raise NetworkFailure(str(e)) from e

        if not expect_json:
            return resp.text
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            logger.error(f"[{self.source_name}] Invalid JSON response from {url}")
            raise NetworkFailure("Invalid JSON response", resp.status_code) from e


def _error_message(resp: Optional[requests.Response]) -> str:
    """Pull a human-readable message out of an error response body."""
    if resp is None:
        return ""
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "").strip()
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])
        return ""
    if isinstance(body, str):
        return body
    return (resp.text or "").strip()


# ── Marketplace API ─────────────────────────────────────────────────────────

class MarketplaceAPI(BaseClient):
    """One method per backend endpoint."""

    source_name = "market"

    @classmethod
    def from_config(cls, config: BackendConfig, session: Optional[requests.Session] = None) -> "MarketplaceAPI":
        return cls(config.base_url, config.timeout, session=session)

    # Listings

    def list_listings(self) -> list[Listing]:
        return parse_listings(self._request("GET", "/listings"))

    def filter_listings(self, categories: Iterable[str]) -> list[Listing]:
        params = [("categories", c) for c in categories]
        return parse_listings(self._request("GET", "/listings/filter", params=params))

    def filter_and_sort(self, query: ListingQuery) -> list[Listing]:
        data = self._request("GET", "/listings/filterAndSort", params=query.to_params())
        listings = parse_listings(data)
        logger.info(f"[{self.source_name}] Fetched {len(listings)} listings (sort={SortOption.parse(query.sort).value})")
        return listings

    def get_listing(self, listid: int) -> Listing:
        data = self._request("GET", f"/listings/{listid}")
        if not isinstance(data, dict):
            raise NetworkFailure(f"Unexpected listing payload for {listid}")
        return Listing.from_api(data)

    def create_listing(self, payload: dict) -> dict:
        return self._request("POST", "/listings", json_body=payload) or {}

    def list_categories(self) -> CategoryRegistry:
        return CategoryRegistry.from_api(self._request("GET", "/taskcategories"))

    # Assignment

    def assign(self, listid: int, uid: int) -> str:
        return self._request("POST", f"/listings/{listid}/assign/{uid}", expect_json=False)

    def unassign(self, listid: int, uid: int) -> str:
        return self._request("POST", f"/listings/{listid}/unassign/{uid}", expect_json=False)

    def assigned_users(self, listid: int) -> list[AssignedUser]:
        data = self._request("GET", f"/listings/{listid}/assigned-users") or []
        return [AssignedUser.from_api(u) for u in data if isinstance(u, dict)]

    def complete(self, listid: int, poster_uid: int) -> str:
        return self._request(
            "POST", f"/listings/{listid}/complete",
            json_body={"poster_uid": poster_uid}, expect_json=False,
        )

    # Reviews

    def list_reviews(self, listid: int) -> list[Review]:
        data = self._request("GET", f"/listings/{listid}/reviews") or []
        return [Review.from_api(r) for r in data if isinstance(r, dict)]

    def submit_review(self, review: Review) -> dict:
        return self._request("POST", "/reviews", json_body=review.to_payload()) or {}

    # Accounts

    def signup(self, name: str, email: str, password: str, phone_number: str = "") -> User:
        body = {"name": name, "email": email, "password": password, "phone_number": phone_number}
        return User.from_api(self._request("POST", "/signup", json_body=body) or {})

    def login(self, password: str, email: str = "", phone_number: str = "") -> User:
        body = {"password": password}
        if email:
            body["email"] = email
        if phone_number:
            body["phone_number"] = phone_number
        return User.from_api(self._request("POST", "/login", json_body=body) or {})

    def user_name(self, uid: int) -> str:
        return self._request("GET", f"/users/{uid}/name", expect_json=False).strip()

    def profile(self, uid: int) -> User:
        return User.from_api(self._request("GET", f"/profile/{uid}") or {})

    def set_preferences(self, uid: int, category_ids: Iterable[int]) -> bool:
        return bool(self._request("POST", f"/preferences/{uid}", json_body=list(category_ids)))


# ── Geocoder ────────────────────────────────────────────────────────────────

@dataclass
class AddressCandidate:
    display_name: str
    latitude: float
    longitude: float


class GeocodingClient(BaseClient):
    """
    Address lookup against a Nominatim-compatible ``/search`` endpoint.
    Listings can only be created at an address picked from these candidates.
    """

    source_name = "geocoder"
    MIN_QUERY_LENGTH = 4

    def __init__(self, base_url: str, timeout: float = 15, session: Optional[requests.Session] = None):
        super().__init__(base_url, timeout, session)
        # Nominatim's usage policy requires an identifying agent
        self.session.headers.update({"User-Agent": "task-market-client"})

    @classmethod
    def from_config(cls, config: GeoConfig, session: Optional[requests.Session] = None) -> "GeocodingClient":
        return cls(config.geocoder_url, session=session)

    def search(self, address: str) -> list[AddressCandidate]:
        if len(address.strip()) < self.MIN_QUERY_LENGTH:
            return []
        data = self._request("GET", "/search", params={"format": "json", "q": address.strip()})
        candidates = []
        for item in data if isinstance(data, list) else []:
            try:
                candidates.append(AddressCandidate(
                    display_name=item["display_name"],
                    latitude=float(item["lat"]),
                    longitude=float(item["lon"]),
                ))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"[geocoder] Skipping item: {e}")
        return candidates
