"""Tests for the post-completion review flow."""

import pytest

from helpers import FakeSession

from api_client import MarketplaceAPI
from errors import ServerRejection, ValidationError
from models import AssignedUser
from review_flow import ReviewFlow


@pytest.fixture
def flow(api: MarketplaceAPI, session: FakeSession) -> ReviewFlow:
    session.add("GET", "/listings/4/assigned-users", json_body=[
        {"uid": 2, "name": "Ana"},
        {"uid": 9, "name": "Poster"},
        {"uid": 3, "name": "Bo"},
    ])
    session.add("POST", "/reviews", json_body={"message": "Review submitted"})
    return ReviewFlow.for_listing(api, 4, reviewer_uid=9)


class TestReviewFlow:
    def test_reviewer_is_excluded(self, flow: ReviewFlow) -> None:
        assert [a.uid for a in flow.assignees] == [2, 3]
        assert flow.current.name == "Ana"

    def test_reviews_each_worker_in_turn(self, flow: ReviewFlow, session: FakeSession) -> None:
        flow.submit(5, "Great work")
        assert flow.current.uid == 3
        flow.submit(4)
        assert flow.done
        assert flow.current is None

        bodies = [c.json for c in session.calls_to("/reviews")]
        assert bodies == [
            {"listid": 4, "reviewer_uid": 9, "reviewee_uid": 2, "rating": 5, "comment": "Great work"},
            {"listid": 4, "reviewer_uid": 9, "reviewee_uid": 3, "rating": 4, "comment": ""},
        ]

    @pytest.mark.parametrize("rating", [0, 6, None, "5"])
    def test_rating_must_be_one_to_five(self, flow: ReviewFlow, session: FakeSession, rating) -> None:
        with pytest.raises(ValidationError):
            flow.submit(rating)
        assert flow.current.uid == 2
        assert session.calls_to("/reviews") == []

    def test_skip(self, flow: ReviewFlow, session: FakeSession) -> None:
        flow.skip()
        flow.skip()
        flow.skip()
        assert flow.done
        with pytest.raises(ValidationError):
            flow.submit(3)
        assert session.calls_to("/reviews") == []

    def test_failed_submit_does_not_advance(self, flow: ReviewFlow, session: FakeSession) -> None:
        session.add("POST", "/reviews", status=500, text="boom")
        with pytest.raises(ServerRejection):
            flow.submit(5)
        assert flow.current.uid == 2

    def test_nobody_to_review(self, api: MarketplaceAPI) -> None:
        flow = ReviewFlow(api, 4, reviewer_uid=9, assignees=[AssignedUser(uid=9)])
        assert flow.done
