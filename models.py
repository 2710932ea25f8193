"""
Data model for the task marketplace.

Backend records arrive as loosely-typed JSON maps. Each type here has a
``from_api`` constructor that normalizes one record and never raises on
missing or malformed fields.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


# ── Enums ───────────────────────────────────────────────────────────────────

class ListingStatus(str, Enum):
    OPEN = "open"
    TAKEN = "taken"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: Any) -> Optional["ListingStatus"]:
        """Exact, case-sensitive parse. Unknown values give None."""
        try:
            return cls(value)
        except ValueError:
            return None


class SortOption(str, Enum):
    """Sort modes understood by /listings/filterAndSort."""
    DEFAULT = "--"
    BEST_MATCH = "best-match"
    DISTANCE = "distance"
    PRICE = "price"
    CATEGORY = "category"
    DEADLINE = "deadline"

    @classmethod
    def parse(cls, value: Any) -> "SortOption":
        try:
            return cls(value)
        except ValueError:
            return cls.DEFAULT


ALL_STATUSES = "all"


def status_value(status: Any) -> str:
    """Plain string form of a status or status filter."""
    if isinstance(status, ListingStatus):
        return status.value
    return status


# ── Field coercion ──────────────────────────────────────────────────────────

def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


# ── Listing ─────────────────────────────────────────────────────────────────

@dataclass
class Listing:
    """A task posted to the marketplace, as last confirmed by the server."""
    listid: int
    name: str = ""
    description: str = ""
    price: Optional[Decimal] = None
    duration: Optional[int] = None       # minutes
    capacity: Optional[int] = None
    address: str = ""
    deadline: Optional[str] = None       # ISO timestamp as received
    status: Optional[ListingStatus] = None
    match_score: Optional[float] = None  # server-computed for the current viewer
    distance: Optional[float] = None
    category_matches: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    posting_time: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_api(cls, item: dict) -> "Listing":
        listid = _int(item.get("listid", item.get("id")))
        if listid is None:
            raise ValueError(f"listing record without an id: {item!r}")
        return cls(
            listid=listid,
            name=_text(item.get("listing_name", item.get("name"))),
            description=_text(item.get("description")),
            price=_decimal(item.get("price")),
            duration=_int(item.get("duration")),
            capacity=_int(item.get("capacity")),
            address=_text(item.get("address", item.get("location"))),
            deadline=item.get("deadline"),
            status=ListingStatus.parse(item.get("status")),
            match_score=_float(item.get("match_score")),
            distance=_float(item.get("distance")),
            category_matches=_int(item.get("category_matches")),
            latitude=_float(item.get("latitude")),
            longitude=_float(item.get("longitude")),
            posting_time=item.get("posting_time"),
            raw=item,
        )

    def to_dict(self) -> dict:
        return {
            "listid": self.listid,
            "listing_name": self.name,
            "description": self.description,
            "price": str(self.price) if self.price is not None else None,
            "duration": self.duration,
            "capacity": self.capacity,
            "address": self.address,
            "deadline": self.deadline,
            "status": self.status.value if self.status else None,
            "match_score": self.match_score,
            "distance": self.distance,
        }


def parse_listings(items: Any) -> list[Listing]:
    """Normalize a list of backend records, skipping ones without an id."""
    if not isinstance(items, list):
        return []
    listings = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            listings.append(Listing.from_api(item))
        except ValueError as e:
            logger.debug(f"Skipping listing record: {e}")
    return listings


# ── Categories ──────────────────────────────────────────────────────────────

@dataclass
class TaskCategory:
    category_id: int
    name: str

    @classmethod
    def from_api(cls, item: dict) -> "TaskCategory":
        return cls(
            category_id=_int(item.get("category_id", item.get("id"))) or 0,
            name=_text(item.get("category_name", item.get("name"))),
        )


class CategoryRegistry:
    """Categories keyed by stable id, with display names resolved by lookup."""

    def __init__(self, categories: Iterable[TaskCategory] = ()):
        self._by_id: dict[int, TaskCategory] = {}
        self._by_name: dict[str, TaskCategory] = {}
        for category in categories:
            self.add(category)

    @classmethod
    def from_api(cls, items: Any) -> "CategoryRegistry":
        if not isinstance(items, list):
            return cls()
        return cls(TaskCategory.from_api(i) for i in items if isinstance(i, dict))

    def add(self, category: TaskCategory) -> None:
        self._by_id[category.category_id] = category
        self._by_name[category.name.lower()] = category

    def get(self, category_id: int) -> Optional[TaskCategory]:
        return self._by_id.get(category_id)

    def by_name(self, name: str) -> Optional[TaskCategory]:
        return self._by_name.get(name.strip().lower())

    def ids_for(self, names: Iterable[str]) -> list[int]:
        """Resolve display names to ids. Unknown names raise KeyError."""
        ids = []
        for name in names:
            category = self.by_name(name)
            if category is None:
                raise KeyError(name)
            ids.append(category.category_id)
        return ids

    def names(self) -> list[str]:
        return [c.name for c in self._by_id.values()]

    def __iter__(self):
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, name: str) -> bool:
        return self.by_name(name) is not None


# ── Users & reviews ─────────────────────────────────────────────────────────

@dataclass
class Review:
    listid: int
    reviewer_uid: int
    reviewee_uid: int
    rating: Optional[int] = None
    comment: Optional[str] = None
    timestamp: Optional[str] = None
    reviewer_name: Optional[str] = None
    listing_name: Optional[str] = None

    @classmethod
    def from_api(cls, item: dict) -> "Review":
        return cls(
            listid=_int(item.get("listid")) or 0,
            reviewer_uid=_int(item.get("reviewer_uid")) or 0,
            reviewee_uid=_int(item.get("reviewee_uid")) or 0,
            rating=_int(item.get("rating")),
            comment=item.get("comment"),
            timestamp=item.get("timestamp"),
            reviewer_name=item.get("reviewer_name"),
            listing_name=item.get("listing_name"),
        )

    def to_payload(self) -> dict:
        return {
            "listid": self.listid,
            "reviewer_uid": self.reviewer_uid,
            "reviewee_uid": self.reviewee_uid,
            "rating": self.rating,
            "comment": self.comment or "",
        }

    @property
    def stars(self) -> str:
        rating = max(0, min(5, self.rating or 0))
        return "★" * rating + "☆" * (5 - rating)


@dataclass
class AssignedUser:
    uid: int
    name: str = ""
    profile_picture: Optional[str] = None

    @classmethod
    def from_api(cls, item: dict) -> "AssignedUser":
        return cls(
            uid=_int(item.get("uid")) or 0,
            name=_text(item.get("name")),
            profile_picture=item.get("profile_picture"),
        )


@dataclass
class User:
    uid: int
    name: str = ""
    email: Optional[str] = None
    phone_number: Optional[str] = None
    profile_picture: Optional[str] = None
    overall_rating: Optional[float] = None
    total_earnings: Decimal = Decimal("0")
    preferences: set = field(default_factory=set)     # category ids
    reviews: list = field(default_factory=list)
    created_listings: list = field(default_factory=list)
    assigned_listings: list = field(default_factory=list)

    @classmethod
    def from_api(cls, item: dict) -> "User":
        uid = _int(item.get("uid"))
        if uid is None:
            raise ValueError("user record without a uid")
        reviews = item.get("reviews") or []
        return cls(
            uid=uid,
            name=_text(item.get("name")),
            email=item.get("email") or None,
            phone_number=item.get("phone_number", item.get("phone")) or None,
            profile_picture=item.get("profile_picture"),
            overall_rating=_float(item.get("overall_rating")),
            total_earnings=_decimal(item.get("total_earnings")) or Decimal("0"),
            preferences={p for p in (_int(x) for x in item.get("preferences") or []) if p is not None},
            reviews=[Review.from_api(r) for r in reviews if isinstance(r, dict)],
            created_listings=parse_listings(item.get("created_listings")),
            assigned_listings=parse_listings(item.get("assigned_listings")),
        )

    def to_dict(self) -> dict:
        """Record persisted in the session store."""
        return {
            "uid": self.uid,
            "name": self.name,
            "email": self.email,
            "phone_number": self.phone_number,
            "profile_picture": self.profile_picture,
            "overall_rating": self.overall_rating,
            "total_earnings": str(self.total_earnings),
            "preferences": sorted(self.preferences),
        }
