"""
Writes the current listings view to a JSON file for other tools to read.
"""

import json
import logging
import os

from config import AppConfig
from listings_view import ListingsViewModel

logger = logging.getLogger(__name__)


def export_snapshot(view: ListingsViewModel, config: AppConfig) -> str:
    """Serialize the view state to ``output_dir/data_filename``. Returns the path."""
    os.makedirs(config.output_dir, exist_ok=True)
    json_path = os.path.join(config.output_dir, config.data_filename)
    with open(json_path, "w") as f:
        json.dump(view.state.to_dict(), f, indent=2)
    logger.info(f"Saved {len(view.state.listings)} listings to {json_path}")
    return json_path
