"""
Assessment API connection settings and the shared HTTP session.

Credentials come from the environment, with ``.env`` at the repo root loaded
first:

  API_KEY               static key sent as ``x-api-key`` (required)
  ASSESSMENT_BASE_URL   service root, defaults to the public assessment API
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import requests
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parents[1] / ".env")

DEFAULT_BASE_URL = "https://assessment.ksensetech.com/api"

# Per-request socket timeout; retries are counted separately by the callers
REQUEST_TIMEOUT_SECONDS = 30


def get_base_url() -> str:
    url = os.environ.get("ASSESSMENT_BASE_URL", "").strip() or DEFAULT_BASE_URL
    return url.rstrip("/")


def get_api_key() -> Optional[str]:
    key = os.environ.get("API_KEY", "").strip()
    return key or None


def create_session(api_key: str) -> requests.Session:
    """Create a requests session that carries the API key on every call."""
    session = requests.Session()
    session.headers.update({
        "x-api-key": api_key,
        "Accept": "application/json",
        "User-Agent": "Triage-Assessment/1.0",
    })
    return session
