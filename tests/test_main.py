"""Tests for the offline demo backend and the CLI entry point."""

import json

import pytest
import requests

from helpers import FakeSession, listing

from accounts import AuthFlow
from api_client import ListingQuery, MarketplaceAPI
from config import AppConfig
from listings_view import ListingsViewModel
from main import DemoMarketplace, build_parser, cmd_create, cmd_onboard, generate_demo_data, main
from models import ListingStatus, SortOption, User
from session_store import SessionStore
from snapshot import export_snapshot

HOME = (43.4723, -80.5449)


@pytest.fixture
def demo() -> DemoMarketplace:
    return DemoMarketplace(generate_demo_data(seed=7))


class TestDemoData:
    def test_is_deterministic(self) -> None:
        a = [l.to_dict() for l, _ in generate_demo_data(seed=1)]
        b = [l.to_dict() for l, _ in generate_demo_data(seed=1)]
        assert [x["price"] for x in a] == [x["price"] for x in b]
        assert len(a) == 12

    def test_every_listing_is_well_formed(self) -> None:
        for item, categories in generate_demo_data(seed=3):
            assert item.status is not None
            assert item.latitude is not None
            assert categories


class TestDemoMarketplace:
    def test_category_filter_requires_all_selected(self, demo: DemoMarketplace) -> None:
        result = demo.filter_and_sort(ListingQuery(*HOME, categories=["Repair", "Gardening"]))
        assert [l.name for l in result] == ["Paint the fence"]

    def test_category_names_are_case_insensitive(self, demo: DemoMarketplace) -> None:
        assert demo.filter_and_sort(ListingQuery(*HOME, categories=["cleaning"]))

    def test_status_filter(self, demo: DemoMarketplace) -> None:
        for item in demo.filter_and_sort(ListingQuery(*HOME, status="open")):
            assert item.status is ListingStatus.OPEN

    def test_search(self, demo: DemoMarketplace) -> None:
        names = [l.name for l in demo.filter_and_sort(ListingQuery(*HOME, search="sink"))]
        assert names == ["Fix sink"]

    def test_status_rank_comes_first(self, demo: DemoMarketplace) -> None:
        rank = {ListingStatus.OPEN: 1, ListingStatus.TAKEN: 2, ListingStatus.COMPLETED: 3}
        for sort in SortOption:
            result = demo.filter_and_sort(ListingQuery(*HOME, sort=sort))
            ranks = [rank[l.status] for l in result]
            assert ranks == sorted(ranks)

    def test_price_sort_is_descending_within_status(self) -> None:
        data = [
            (listing(1, "A", "open", price=10, latitude=1.0, longitude=1.0), ["Repair"]),
            (listing(2, "B", "open", price=90, latitude=1.0, longitude=1.0), ["Repair"]),
            (listing(3, "C", "taken", price=500, latitude=1.0, longitude=1.0), ["Repair"]),
        ]
        result = DemoMarketplace(data).filter_and_sort(ListingQuery(*HOME, sort="price"))
        assert [l.listid for l in result] == [2, 1, 3]

    def test_distance_sort(self) -> None:
        data = [
            (listing(1, "Far", "open", latitude=44.0, longitude=-79.0), ["Repair"]),
            (listing(2, "Near", "open", latitude=43.47, longitude=-80.54), ["Repair"]),
        ]
        result = DemoMarketplace(data).filter_and_sort(ListingQuery(*HOME, sort=SortOption.DISTANCE))
        assert [l.name for l in result] == ["Near", "Far"]

    def test_drives_the_view(self, demo: DemoMarketplace) -> None:
        view = ListingsViewModel(demo)
        assert view.load() is True
        assert len(view.state.categories) == 8
        assert view.toggle_category("Cleaning") is True
        assert {l.listid for l in view.state.listings} == {1, 9}


class TestSnapshot:
    def test_writes_view_state(self, demo: DemoMarketplace, tmp_path) -> None:
        view = ListingsViewModel(demo)
        view.configure(search="clean")
        view.load()
        config = AppConfig(output_dir=str(tmp_path / "out"), data_filename="snap.json")

        path = export_snapshot(view, config)
        with open(path) as f:
            data = json.load(f)
        assert data["filters"]["search"] == "clean"
        assert data["total_listings"] == len(view.state.listings)
        assert {l["listid"] for l in data["listings"]} == {l.listid for l in view.visible_listings()}


class TestCli:
    def test_parser(self) -> None:
        args = build_parser().parse_args(["listings", "--category", "Cleaning", "--category", "Moving",
                                          "--status", "open", "--sort", "price"])
        assert args.category == ["Cleaning", "Moving"]
        assert args.status == "open"
        assert args.sort == "price"

    def test_parser_rejects_unknown_status(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["listings", "--status", "pending"])

    def test_demo_listings(self, capsys, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MARKET_LATITUDE", raising=False)
        assert main(["--demo", "listings", "--status", "open", "--sort", "distance"]) == 0
        out = capsys.readouterr().out
        assert "Status: open | Sort: distance" in out

    def test_demo_suggest(self, capsys) -> None:
        assert main(["--demo", "suggest", "clea"]) == 0
        out = capsys.readouterr().out
        assert "[listing] Deep Cleaning for 2BR apartment" in out
        assert "[category] Cleaning services" in out

    def test_demo_rejects_backend_commands(self) -> None:
        assert main(["--demo", "assign", "1"]) == 2


class TestBackendDown:
    @pytest.fixture
    def auth(self, api: MarketplaceAPI, session: FakeSession, tmp_path) -> AuthFlow:
        session.add("GET", "/taskcategories", exc=requests.exceptions.ConnectionError("refused"))
        store = SessionStore(str(tmp_path / "session.json"))
        store.save(User(uid=7, name="Ana"))
        return AuthFlow(api, store)

    def test_onboard_reports_failure(self, auth: AuthFlow, capsys) -> None:
        args = build_parser().parse_args(["onboard", "Cleaning"])
        assert cmd_onboard(args, AppConfig(), auth) == 1
        assert "Could not load categories" in capsys.readouterr().out

    def test_create_reports_failure(self, auth: AuthFlow, session: FakeSession, capsys) -> None:
        args = build_parser().parse_args([
            "create", "--name", "Fix sink", "--price", "40", "--duration", "60",
            "--deadline", "2026-11-02T18:00:00+00:00", "--address", "12 King St",
            "--category", "Repair",
        ])
        assert cmd_create(args, AppConfig(), auth) == 1
        assert "Could not load categories" in capsys.readouterr().out
        assert session.calls_to("/search") == []

    def test_main_returns_error_code(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def refuse(self, method, url, **kwargs):
            raise requests.exceptions.ConnectionError("refused")

        monkeypatch.setattr(requests.Session, "request", refuse)
        assert main(["onboard", "Cleaning"]) == 1
