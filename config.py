"""
Configuration for the task marketplace client.
Values come from environment variables where a deployment would override them.

Backend:
  - MARKET_API_URL: base URL of the marketplace backend (default http://localhost:8080)
  - MARKET_API_TIMEOUT: per-request timeout in seconds
"""

import os
from dataclasses import dataclass, field


@dataclass
class BackendConfig:
    """Where the marketplace backend lives."""
    base_url: str = os.getenv("MARKET_API_URL", "http://localhost:8080")
    timeout: float = float(os.getenv("MARKET_API_TIMEOUT", "15"))


@dataclass
class SearchSettings:
    """Search box behaviour."""
    debounce_seconds: float = 0.3      # quiet period before a query is dispatched
    suggestion_limit: int = 8
    min_query_length: int = 2


@dataclass
class GeoConfig:
    """
    Viewer location. The fallback coordinate is used whenever the
    location provider is unavailable or too slow to answer.
    """
    fallback_latitude: float = 43.4723
    fallback_longitude: float = -80.5449
    timeout_seconds: float = 5.0
    geocoder_url: str = os.getenv(
        "MARKET_GEOCODER_URL", "https://nominatim.openstreetmap.org"
    )


@dataclass
class AppConfig:
    """Top-level configuration."""
    backend: BackendConfig = field(default_factory=BackendConfig)
    search: SearchSettings = field(default_factory=SearchSettings)
    geo: GeoConfig = field(default_factory=GeoConfig)

    # Persisted login, the equivalent of the browser's local storage entry
    session_path: str = os.getenv(
        "MARKET_SESSION_PATH", os.path.expanduser("~/.task-market/session.json")
    )

    # Output
    output_dir: str = os.path.expanduser("~/.task-market/output")
    data_filename: str = "listings.json"

    # Worker threads for overlapping refreshes
    max_workers: int = 4
