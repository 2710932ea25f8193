"""
Post-completion reviews: the poster rates each assigned worker in turn.
"""

import logging
from typing import Optional

from api_client import MarketplaceAPI
from errors import ValidationError
from models import AssignedUser, Review

logger = logging.getLogger(__name__)


class ReviewFlow:
    def __init__(self, api: MarketplaceAPI, listid: int, reviewer_uid: int, assignees: list[AssignedUser]):
        self.api = api
        self.listid = listid
        self.reviewer_uid = reviewer_uid
        # Nobody reviews themselves
        self.assignees = [a for a in assignees if a.uid != reviewer_uid]
        self.index = 0

    @classmethod
    def for_listing(cls, api: MarketplaceAPI, listid: int, reviewer_uid: int) -> "ReviewFlow":
        return cls(api, listid, reviewer_uid, api.assigned_users(listid))

    @property
    def current(self) -> Optional[AssignedUser]:
        if self.done:
            return None
        return self.assignees[self.index]

    @property
    def done(self) -> bool:
        return self.index >= len(self.assignees)

    def submit(self, rating: int, comment: str = "") -> dict:
        """Review the current worker and move on to the next one."""
        worker = self.current
        if worker is None:
            raise ValidationError("Every assigned worker has already been reviewed")
        if not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Please select a rating between 1 and 5")
        result = self.api.submit_review(Review(
            listid=self.listid,
            reviewer_uid=self.reviewer_uid,
            reviewee_uid=worker.uid,
            rating=rating,
            comment=comment,
        ))
        logger.info(f"Reviewed {worker.name or worker.uid} on listing {self.listid}")
        self.index += 1
        return result

    def skip(self) -> None:
        if not self.done:
            self.index += 1
