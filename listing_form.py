"""
Listing creation: local validation and the POST /listings payload.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from api_client import AddressCandidate, MarketplaceAPI
from errors import MarketplaceError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class ListingDraft:
    name: str = ""
    description: str = ""
    price: Optional[Decimal] = None
    capacity: int = 1
    duration: Optional[int] = None         # minutes
    deadline: Optional[datetime] = None
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    category_ids: list = field(default_factory=list)

    def pick_address(self, candidate: AddressCandidate) -> None:
        """Addresses must come from the geocoder so the listing has coordinates."""
        self.address = candidate.display_name
        self.latitude = candidate.latitude
        self.longitude = candidate.longitude

    def validate(self, now: Optional[datetime] = None) -> None:
        now = now or datetime.now(timezone.utc)
        if not self.name.strip():
            raise ValidationError("Listing name is required")
        if self.price is None or self.price < 0:
            raise ValidationError("Valid price is required")
        if self.capacity is None or self.capacity < 1:
            raise ValidationError("Capacity must be greater than 0")
        if self.duration is None or self.duration <= 0:
            raise ValidationError("Duration must be greater than 0")
        if not self.address.strip():
            raise ValidationError("Address is required")
        if self.latitude is None or self.longitude is None:
            raise ValidationError("Please select a valid address from the suggestions.")
        if not self.category_ids:
            raise ValidationError("Please select at least one category")
        if self.deadline is None:
            raise ValidationError("Please select a deadline date")
        if _as_utc(self.deadline) <= _as_utc(now) + timedelta(minutes=self.duration):
            raise ValidationError(f"Deadline must be at least {self.duration} minutes from now")

    def to_payload(self, poster_uid: int) -> dict:
        return {
            "listing_name": self.name.strip(),
            "description": self.description.strip(),
            "price": float(self.price),
            "capacity": int(self.capacity),
            "duration": int(self.duration),
            "deadline": _as_utc(self.deadline).strftime("%Y-%m-%dT%H:%M:%S.000Z"),
            "address": self.address.strip(),
            "longitude": self.longitude,
            "latitude": self.latitude,
            "poster_uid": poster_uid,
            "category_ids": list(self.category_ids),
        }


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def create_listing(api: MarketplaceAPI, draft: ListingDraft, poster_uid: int) -> int:
    """Validate and submit a draft. Returns the server-assigned listing id."""
    draft.validate()
    try:
        result = api.create_listing(draft.to_payload(poster_uid))
    except MarketplaceError:
        logger.error(f"Failed to create listing {draft.name!r}")
        raise
    listid = result.get("listid")
    logger.info(f"Created listing {listid}: {result.get('message', '')}")
    return listid
