"""
WanderRhodes travel planner – main application entry point

* Flask app exposing the itinerary pipeline under `/travel`.
* Configuration is read from the environment (and `.env`) at startup; a
  missing LLM credential stops the app from starting.
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv

# --------------------------------------------------------------------------- #
# Environment & logging
# --------------------------------------------------------------------------- #
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

from wander_travel.api.config import get_port, validate_config  # noqa: E402
from wander_travel.routes.travel import create_travel_blueprint  # noqa: E402


def create_app(service_factory=None, validate: bool = True) -> Flask:
    """Build the Flask application.

    Args:
        service_factory: Optional ItineraryService factory (tests inject one)
        validate: Run startup configuration checks

    Returns:
        Configured Flask app
    """
    if validate:
        validate_config()

    app = Flask(__name__)

    # CORS for local dev / cross‑origin front‑end requests
    CORS(app, origins=os.getenv("CORS_ORIGINS", "*"))

    if service_factory is not None:
        app.register_blueprint(create_travel_blueprint(service_factory))
    else:
        app.register_blueprint(create_travel_blueprint())

    logger.info("Travel planner app initialised")
    return app


# --------------------------------------------------------------------------- #
# Local development runner ( `python main.py` )
# --------------------------------------------------------------------------- #
if __name__ == "__main__":
    port = get_port()
    logger.info("Starting travel app on http://localhost:%d", port)
    create_app().run(host="0.0.0.0", port=port, debug=False)

__all__ = ["create_app"]
