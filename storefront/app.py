from __future__ import annotations

"""ASGI entrypoint.

Usage:
  uvicorn storefront.app:app --reload
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from .api import create_app

BASE_DIR = Path(__file__).resolve().parent

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("storefront").setLevel(log_level)

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)
else:
    load_dotenv()

app = create_app()
