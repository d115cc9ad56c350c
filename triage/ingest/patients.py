"""
Patient page fetch from the assessment API.

One call to ``fetch_patients_page`` returns one ``Page``. Failures never
escape: rate-limit and server errors are retried with exponential backoff,
everything else gives up at once, and both paths end in the empty page.
An empty page therefore means "may need retry", not "no more data".

Usage:
  python -m triage.ingest.patients            # print page 1
  python -m triage.ingest.patients 3 10       # page 3, limit 10
"""
from __future__ import annotations

import json
import logging
import sys
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional

import requests

from triage.api import REQUEST_TIMEOUT_SECONDS, create_session, get_api_key, get_base_url

logger = logging.getLogger(__name__)

# Records per page requested from the API
PAGE_LIMIT = 5

# Attempts per page before giving up on transient errors
MAX_RETRIES = 10

# First backoff delay; doubles on every transient failure
BASE_DELAY_SECONDS = 1.0

# Rate-limit and momentary server errors
TRANSIENT_STATUSES = frozenset({429, 500, 502, 503})


# ---------------------------------------------------------------------------
# Typed page model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Pagination:
    total: Optional[int] = None
    has_next: Optional[bool] = None


@dataclass(frozen=True)
class Page:
    records: list = field(default_factory=list)
    pagination: Optional[Pagination] = None

    @property
    def is_empty(self) -> bool:
        return not self.records


EMPTY_PAGE = Page()


def _parse_total(value: Any) -> Optional[int]:
    # bool is an int subclass; a JSON true is not a count
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer() and value > 0:
        return int(value)
    return None


def parse_pagination(raw: Any) -> Optional[Pagination]:
    if not isinstance(raw, dict):
        return None
    has_next = raw.get("hasNext")
    return Pagination(
        total=_parse_total(raw.get("total")),
        has_next=has_next if isinstance(has_next, bool) else None,
    )


def parse_page(body: Any) -> Page:
    """
    Turn a decoded response body into a ``Page``.

    Missing or mistyped ``data`` gives no records; missing or mistyped
    ``pagination`` gives ``None``. Individual records are passed through
    untouched; the scorer copes with whatever they contain.
    """
    if not isinstance(body, dict):
        return EMPTY_PAGE
    records = body.get("data")
    return Page(
        records=list(records) if isinstance(records, list) else [],
        pagination=parse_pagination(body.get("pagination")),
    )


# ---------------------------------------------------------------------------
# Fetch with backoff
# ---------------------------------------------------------------------------

def fetch_patients_page(
    session: requests.Session,
    page: int,
    limit: int = PAGE_LIMIT,
    *,
    base_url: Optional[str] = None,
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> Page:
    """Fetch one page of patients, degrading to ``EMPTY_PAGE`` on failure."""
    url = f"{base_url or get_base_url()}/patients"
    params = {"page": page, "limit": limit}

    for attempt in range(max_retries):
        try:
            response = session.get(url, params=params, timeout=REQUEST_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            logger.error(f"Unrecoverable error on page {page}: {e}")
            return EMPTY_PAGE

        status = response.status_code
        if status in TRANSIENT_STATUSES:
            delay = base_delay * 2 ** attempt
            logger.warning(
                f"Retry {attempt + 1} for page {page} after {delay:.1f}s (status {status})"
            )
            sleep(delay)
            continue

        try:
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Unrecoverable error on page {page}: {e}")
            return EMPTY_PAGE

        result = parse_page(body)
        logger.info(f"Fetched page {page}: {len(result.records)} patients")
        logger.debug(f"Pagination for page {page}: {result.pagination}")
        return result

    logger.error(f"Giving up on page {page} after {max_retries} attempts")
    return EMPTY_PAGE


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    key = get_api_key()
    if not key:
        print("Set API_KEY in .env or environment.", file=sys.stderr)
        sys.exit(1)
    page_arg = int(sys.argv[1]) if len(sys.argv) > 1 else 1
    limit_arg = int(sys.argv[2]) if len(sys.argv) > 2 else PAGE_LIMIT
    with create_session(key) as s:
        fetched = fetch_patients_page(s, page_arg, limit_arg)
    print(json.dumps({"data": fetched.records, "pagination": asdict(fetched.pagination) if fetched.pagination else None}, indent=2))
