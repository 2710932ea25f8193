#!/usr/bin/env python3
"""
Task Marketplace — Command Line Client

Browse, search and act on marketplace listings from the terminal.

Usage:
    python main.py listings --status open --sort distance
    python main.py listings --category Cleaning --search kitchen --export
    python main.py suggest clea
    python main.py login you@example.com
    python main.py assign 12
    python main.py --demo listings --sort price     # offline, sample data

Environment Variables:
    MARKET_API_URL          — backend base URL (default http://localhost:8080)
    MARKET_SESSION_PATH     — where the logged-in user is kept
    MARKET_LATITUDE/LONGITUDE — viewer location for distance sorting
"""

import argparse
import getpass
import logging
import random
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from accounts import AuthFlow
from api_client import GeocodingClient, ListingQuery, MarketplaceAPI
from config import AppConfig
from errors import MarketplaceError, ValidationError
from filters import matches_query, status_counts
from geolocation import Location, env_location_provider, resolve_location
from listing_form import ListingDraft, create_listing
from listings_view import ListingsViewModel
from models import (
    ALL_STATUSES,
    CategoryRegistry,
    Listing,
    ListingStatus,
    SortOption,
    TaskCategory,
)
from review_flow import ReviewFlow
from session_store import SessionStore
from snapshot import export_snapshot

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


# ── Demo data ───────────────────────────────────────────────────────────────

DEMO_CATEGORIES = [
    "Cleaning", "Tutoring", "Gardening", "Cooking", "Tech Help",
    "Repair", "Moving", "Pet Care",
]


def generate_demo_data(seed: Optional[int] = None) -> list[tuple[Listing, list[str]]]:
    """Sample listings (with their category names) for running without a backend."""
    rng = random.Random(seed)

    tasks = [
        ("Deep Cleaning for 2BR apartment", "Kitchen, bathroom and floors need a deep cleaning", ["Cleaning"]),
        ("Math tutoring", "Grade 11 functions, tutoring twice a week", ["Tutoring"]),
        ("Backyard gardening", "Weeding and planting, some gardening experience preferred", ["Gardening"]),
        ("Meal prep for the week", "Cooking five dinners, vegetarian", ["Cooking"]),
        ("Fix laptop wifi", "Tech support needed, laptop drops the connection", ["Tech Help", "Repair"]),
        ("Fix sink", "Leaking kitchen faucet repair", ["Repair"]),
        ("Help moving a couch", "Moving a couch up three floors", ["Moving"]),
        ("Walk my dog", "Pet walking, 30 minutes every afternoon", ["Pet Care"]),
        ("Clean house before guests", "General cleaning and tidying", ["Cleaning"]),
        ("IKEA wardrobe assembly", "Assembly of one PAX wardrobe", ["Repair"]),
        ("Paint the fence", "Painting a short wooden fence", ["Repair", "Gardening"]),
        ("Grocery delivery", "Pick up and delivery of groceries on Saturday", ["Moving"]),
    ]
    places = [
        ("King Street, Waterloo, ON", 43.4643, -80.5204),
        ("University Ave, Waterloo, ON", 43.4723, -80.5449),
        ("Queen Street, Kitchener, ON", 43.4516, -80.4925),
        ("Hespeler Road, Cambridge, ON", 43.3850, -80.3160),
        ("Gordon Street, Guelph, ON", 43.5300, -80.2300),
    ]
    statuses = [ListingStatus.OPEN] * 3 + [ListingStatus.TAKEN, ListingStatus.COMPLETED]

    now = datetime.now(timezone.utc)
    listings = []
    for i, (name, description, categories) in enumerate(tasks, start=1):
        address, lat, lng = rng.choice(places)
        listings.append((Listing(
            listid=i,
            name=name,
            description=description,
            price=Decimal(rng.randint(20, 200)),
            duration=rng.choice([30, 60, 120, 240]),
            capacity=rng.randint(1, 3),
            address=address,
            deadline=(now + timedelta(hours=rng.randint(2, 240))).isoformat(),
            status=rng.choice(statuses),
            latitude=lat + rng.uniform(-0.01, 0.01),
            longitude=lng + rng.uniform(-0.01, 0.01),
        ), categories))
    return listings


_STATUS_RANK = {
    ListingStatus.OPEN: 1,
    ListingStatus.TAKEN: 2,
    ListingStatus.COMPLETED: 3,
    ListingStatus.CANCELLED: 4,
}


class DemoMarketplace:
    """
    Stand-in for ``MarketplaceAPI`` that answers listing queries from
    generated data, filtering and ordering the way the backend does.
    """

    def __init__(self, data: list[tuple[Listing, list[str]]]):
        self.data = data
        self.registry = CategoryRegistry(
            TaskCategory(i, name) for i, name in enumerate(DEMO_CATEGORIES, start=1)
        )

    def list_categories(self) -> CategoryRegistry:
        return self.registry

    def filter_and_sort(self, query: ListingQuery) -> list[Listing]:
        wanted = {c.lower() for c in query.categories}
        results = []
        for listing, categories in self.data:
            if wanted and not wanted <= {c.lower() for c in categories}:
                continue
            if query.status != ALL_STATUSES and (listing.status is None or listing.status.value != query.status):
                continue
            if not matches_query(listing, query.search):
                continue
            results.append(listing)

        def distance(l: Listing) -> float:
            return ((l.latitude - query.latitude) ** 2 + (l.longitude - query.longitude) ** 2) ** 0.5

        def hours_left(l: Listing) -> float:
            deadline = datetime.fromisoformat(l.deadline)
            return (deadline - datetime.now(timezone.utc)).total_seconds() / 3600

        sort = SortOption.parse(query.sort)
        keys = {
            SortOption.DISTANCE: distance,
            SortOption.PRICE: lambda l: -float(l.price or 0),
            SortOption.DEADLINE: lambda l: l.deadline,
            SortOption.BEST_MATCH: lambda l: -(float(l.price or 0) - distance(l) * 5 - hours_left(l) * 3),
        }
        secondary = keys.get(sort, lambda l: 0)
        results.sort(key=lambda l: (_STATUS_RANK.get(l.status, 5), secondary(l)))
        return results


# ── Output ──────────────────────────────────────────────────────────────────

def print_listings(view: ListingsViewModel) -> None:
    state = view.state
    visible = view.visible_listings()
    counts = status_counts(state.listings)
    print(
        f"\nStatus: {state.status_filter} | Sort: {state.sort_option.value} | "
        f"Categories: {', '.join(state.selected_categories) or 'any'} | "
        f"Search: {state.search_query or '-'}"
    )
    print("  " + "  ".join(f"{k.capitalize()} ({v})" for k, v in counts.items()))
    if not visible:
        print(f'\nNo listings found with status "{state.status_filter}".')
        return
    for listing in visible:
        status = listing.status.value.upper() if listing.status else "UNKNOWN"
        print(f"\n#{listing.listid} {listing.name} [{status}]")
        if listing.description:
            print(f"   {listing.description}")
        print(
            f"   Price: ${listing.price} | Duration: {listing.duration} min | "
            f"People Needed: {listing.capacity}"
        )
        print(f"   Address: {listing.address} | Deadline: {listing.deadline}")


def report_notice(view: ListingsViewModel) -> None:
    if view.state.notice:
        print(f"\n⚠️  {view.state.notice}")


# ── Commands ────────────────────────────────────────────────────────────────

def build_view(args, config: AppConfig, auth: Optional[AuthFlow]) -> ListingsViewModel:
    if args.demo:
        api = DemoMarketplace(generate_demo_data(seed=7))
        viewer = None
    else:
        api = MarketplaceAPI.from_config(config.backend)
        viewer = auth.current_user if auth else None
    location = resolve_location(env_location_provider, timeout=config.geo.timeout_seconds,
                                fallback=Location(config.geo.fallback_latitude, config.geo.fallback_longitude))
    return ListingsViewModel(
        api, viewer=viewer, location=location, settings=config.search,
        executor=ThreadPoolExecutor(max_workers=config.max_workers),
    )


def cmd_listings(args, config: AppConfig, auth: Optional[AuthFlow]) -> int:
    view = build_view(args, config, auth)
    view.configure(
        categories=args.category or [],
        status_filter=args.status,
        sort=args.sort,
        search=args.search,
    )
    view.load()
    report_notice(view)
    print_listings(view)
    if args.export:
        path = export_snapshot(view, config)
        print(f"\n✅ Snapshot saved: {path}")
    view.close()
    return 0 if view.state.notice is None else 1


def cmd_suggest(args, config: AppConfig, auth: Optional[AuthFlow]) -> int:
    view = build_view(args, config, auth)
    view.load()
    suggestions = view.set_query(args.query)
    view.debouncer.cancel()
    view.close()
    if not suggestions:
        print("No suggestions.")
        return 0
    for s in suggestions:
        print(f"[{s.kind.value}] {s.text}")
    return 0


def cmd_signup(args, config: AppConfig, auth: AuthFlow) -> int:
    password = args.password or getpass.getpass("Password: ")
    result = auth.signup(args.name, args.email or "", password, args.phone or "")
    if not result.ok:
        print(f"❌ {result.error}")
        return 1
    print(f"Welcome, {result.user.name}!")
    return 0


def cmd_login(args, config: AppConfig, auth: AuthFlow) -> int:
    password = args.password or getpass.getpass("Password: ")
    result = auth.login(args.identifier, password)
    if not result.ok:
        print(f"❌ {result.error}")
        return 1
    print(f"Welcome, {result.user.name}!")
    return 0


def cmd_logout(args, config: AppConfig, auth: AuthFlow) -> int:
    auth.logout()
    print("Logged out.")
    return 0


def cmd_onboard(args, config: AppConfig, auth: AuthFlow) -> int:
    try:
        registry = auth.api.list_categories()
    except MarketplaceError as e:
        print(f"❌ Could not load categories: {e.message}")
        return 1
    try:
        ids = registry.ids_for(args.categories)
    except KeyError as e:
        print(f"❌ Unknown category: {e.args[0]} (choose from {', '.join(registry.names())})")
        return 1
    try:
        saved = auth.save_preferences(ids)
    except ValidationError as e:
        print(f"❌ {e.message}")
        return 1
    print("Preferences saved." if saved else "❌ Could not save preferences.")
    return 0 if saved else 1


def cmd_create(args, config: AppConfig, auth: AuthFlow) -> int:
    if auth.current_user is None:
        print("❌ User must be logged in to create listing")
        return 1
    try:
        registry = auth.api.list_categories()
        category_ids = registry.ids_for(args.category or [])
    except KeyError as e:
        print(f"❌ Unknown category: {e.args[0]}")
        return 1
    except MarketplaceError as e:
        print(f"❌ Could not load categories: {e.message}")
        return 1
    geocoder = GeocodingClient.from_config(config.geo)
    try:
        candidates = geocoder.search(args.address)
    except MarketplaceError as e:
        print(f"❌ Address lookup failed: {e.message}")
        return 1
    if not candidates:
        print("❌ Please select a valid address from the suggestions.")
        return 1
    if args.pick >= len(candidates):
        for i, c in enumerate(candidates):
            print(f"  [{i}] {c.display_name}")
        print("❌ --pick is out of range")
        return 1

    try:
        price = Decimal(args.price)
        deadline = datetime.fromisoformat(args.deadline)
    except (InvalidOperation, ValueError):
        print("❌ Price must be a number and the deadline an ISO-8601 timestamp")
        return 1

    draft = ListingDraft(
        name=args.name,
        description=args.description or "",
        price=price,
        capacity=args.capacity,
        duration=args.duration,
        deadline=deadline,
        category_ids=category_ids,
    )
    draft.pick_address(candidates[args.pick])
    try:
        listid = create_listing(auth.api, draft, auth.current_user.uid)
    except MarketplaceError as e:
        print(f"❌ {e.message}")
        return 1
    print(f"✅ Listing created: #{listid} at {draft.address}")
    return 0


def _listing_action(args, config: AppConfig, auth: AuthFlow, action: str) -> int:
    view = build_view(args, config, auth)
    view.load()
    ok = getattr(view, action)(args.listid)
    report_notice(view)
    if ok:
        updated = next((l for l in view.state.listings if l.listid == args.listid), None)
        if updated is not None and updated.status is not None:
            print(f"#{updated.listid} {updated.name} is now {updated.status.value.upper()}")
    view.close()
    return 0 if ok else 1


def cmd_assign(args, config, auth) -> int:
    return _listing_action(args, config, auth, "assign")


def cmd_unassign(args, config, auth) -> int:
    return _listing_action(args, config, auth, "unassign")


def cmd_complete(args, config, auth) -> int:
    return _listing_action(args, config, auth, "complete")


def cmd_reviews(args, config: AppConfig, auth: AuthFlow) -> int:
    view = build_view(args, config, auth)
    reviews = view.expand(args.listid)
    view.close()
    if reviews is None:
        print("❌ Could not load reviews.")
        return 1
    if not reviews:
        print("No reviews yet for this listing.")
    for r in reviews:
        print(f"{r.stars}  {view.user_name(r.reviewer_uid)} → {view.user_name(r.reviewee_uid)}")
        if r.comment:
            print(f"   {r.comment}")
    return 0


def cmd_review(args, config: AppConfig, auth: AuthFlow) -> int:
    if auth.current_user is None:
        print("❌ Log in to leave reviews.")
        return 1
    try:
        flow = ReviewFlow.for_listing(auth.api, args.listid, auth.current_user.uid)
    except MarketplaceError as e:
        print(f"❌ {e.message}")
        return 1
    while not flow.done:
        worker = flow.current
        rating = args.rating
        if rating is None:
            answer = input(f"Rating for {worker.name} (1-5, blank to skip): ").strip()
            if not answer:
                flow.skip()
                continue
            rating = int(answer) if answer.isdigit() else 0
        try:
            result = flow.submit(rating, args.comment or "")
        except ValidationError as e:
            print(f"❌ {e.message}")
            if args.rating is not None:
                return 1
            continue
        except MarketplaceError as e:
            print(f"❌ Failed to submit review: {e.message}")
            return 1
        print(result.get("message", "Review submitted"))
    return 0


def cmd_profile(args, config: AppConfig, auth: AuthFlow) -> int:
    user = auth.load_profile(args.uid)
    if user is None:
        print("Please log in to view your profile" if args.uid is None else "User not found")
        return 1
    rating = f"{user.overall_rating:.1f}" if user.overall_rating is not None else "—"
    print(f"{user.name} (uid {user.uid})  Rating: {rating}  Earnings: ${user.total_earnings}")
    print(f"Created listings: {len(user.created_listings)} | Assigned listings: {len(user.assigned_listings)}")
    for r in user.reviews:
        print(f"  {r.stars} from {r.reviewer_name or r.reviewer_uid} on {r.listing_name or r.listid}")
    return 0


# ── Entry point ─────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Task marketplace client")
    parser.add_argument("--demo", action="store_true", help="Use sample data (no backend needed)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("listings", help="Show listings")
    p.add_argument("--category", action="append", help="Category name (repeatable)")
    p.add_argument("--status", default=ALL_STATUSES,
                   choices=[ALL_STATUSES] + [s.value for s in ListingStatus])
    p.add_argument("--sort", default=SortOption.DEFAULT.value, choices=[o.value for o in SortOption])
    p.add_argument("--search", default="")
    p.add_argument("--export", action="store_true", help="Write a JSON snapshot")
    p.set_defaults(func=cmd_listings)

    p = sub.add_parser("suggest", help="Search suggestions for a query")
    p.add_argument("query")
    p.set_defaults(func=cmd_suggest)

    p = sub.add_parser("signup", help="Create an account")
    p.add_argument("--name", required=True)
    p.add_argument("--email")
    p.add_argument("--phone")
    p.add_argument("--password")
    p.set_defaults(func=cmd_signup)

    p = sub.add_parser("login", help="Log in with email or phone number")
    p.add_argument("identifier")
    p.add_argument("--password")
    p.set_defaults(func=cmd_login)

    p = sub.add_parser("logout", help="Forget the stored login")
    p.set_defaults(func=cmd_logout)

    p = sub.add_parser("onboard", help="Choose the categories you are interested in")
    p.add_argument("categories", nargs="+")
    p.set_defaults(func=cmd_onboard)

    p = sub.add_parser("create", help="Post a new task")
    p.add_argument("--name", required=True)
    p.add_argument("--description")
    p.add_argument("--price", required=True)
    p.add_argument("--capacity", type=int, default=1)
    p.add_argument("--duration", type=int, required=True, help="Minutes")
    p.add_argument("--deadline", required=True, help="ISO-8601, e.g. 2026-11-02T18:00:00+00:00")
    p.add_argument("--address", required=True)
    p.add_argument("--pick", type=int, default=0, help="Which geocoder match to use")
    p.add_argument("--category", action="append", required=True)
    p.set_defaults(func=cmd_create)

    for name, func, text in (
        ("assign", cmd_assign, "Take a task"),
        ("unassign", cmd_unassign, "Drop a task you took"),
        ("complete", cmd_complete, "Mark your task as complete"),
        ("reviews", cmd_reviews, "Show reviews for a listing"),
    ):
        p = sub.add_parser(name, help=text)
        p.add_argument("listid", type=int)
        p.set_defaults(func=func)

    p = sub.add_parser("review", help="Review the workers of a completed task")
    p.add_argument("listid", type=int)
    p.add_argument("--rating", type=int)
    p.add_argument("--comment")
    p.set_defaults(func=cmd_review)

    p = sub.add_parser("profile", help="Show a profile (yours by default)")
    p.add_argument("uid", type=int, nargs="?")
    p.set_defaults(func=cmd_profile)

    return parser


OFFLINE_COMMANDS = {"listings", "suggest"}


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = AppConfig()
    if args.demo:
        if args.command not in OFFLINE_COMMANDS:
            logger.error(f"--demo only supports: {', '.join(sorted(OFFLINE_COMMANDS))}")
            return 2
        logger.info("Running in DEMO mode with sample data...")
        return args.func(args, config, None)

    api = MarketplaceAPI.from_config(config.backend)
    auth = AuthFlow(api, SessionStore(config.session_path))
    return args.func(args, config, auth)


if __name__ == "__main__":
    sys.exit(main())
