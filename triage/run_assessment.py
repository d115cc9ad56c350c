"""
Patient risk assessment: end-to-end run
========================================

Fetches every patient page from the assessment API, scores each patient and
submits the high-risk, fever and data-quality id lists.

Usage
-----
    # Full run (API_KEY from .env or environment)
    python -m triage.run_assessment

    # Collect and score only; print the payload instead of submitting
    python -m triage.run_assessment --dry-run

    # Larger pages, verbose per-patient logging
    python -m triage.run_assessment --limit 20 -v
"""

from __future__ import annotations

import argparse
import functools
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from triage.api import create_session, get_api_key, get_base_url
from triage.compute.collect import CollectionState, collect
from triage.ingest.patients import PAGE_LIMIT, fetch_patients_page
from triage.load.submit import submit_assessment

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Main orchestration
# ---------------------------------------------------------------------------

def run(
    api_key: str,
    limit: int = PAGE_LIMIT,
    base_url: Optional[str] = None,
    dry_run: bool = False,
) -> tuple[CollectionState, Optional[dict[str, Any]]]:
    """
    Collect, score and submit. Returns the collection state and the
    submission result (None on a dry run).
    """
    base_url = base_url or get_base_url()
    logger.info(f"Starting patient assessment at {datetime.now(timezone.utc).isoformat()}")
    logger.info(f"API: {base_url}, page limit {limit}")

    with create_session(api_key) as session:
        fetch_page = functools.partial(
            fetch_patients_page, session, limit=limit, base_url=base_url,
        )
        state = collect(fetch_page)
        logger.info(f"Counts: {state.summary()}")

        if dry_run:
            logger.info("Dry run, skipping submission.")
            return state, None

        submission = submit_assessment(session, state.payload(), base_url=base_url)

    logger.info(f"Done at {datetime.now(timezone.utc).isoformat()}")
    return state, submission


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Score every patient from the assessment API and submit the results."
    )
    parser.add_argument(
        "--limit", type=int, default=PAGE_LIMIT,
        help=f"Patients per page (default {PAGE_LIMIT}).",
    )
    parser.add_argument(
        "--base-url", default=None,
        help="Override ASSESSMENT_BASE_URL.",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Collect and score but do not submit; print the payload.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log every patient score.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    api_key = get_api_key()
    if not api_key:
        print("API_KEY is not set. Add it to .env or the environment.", file=sys.stderr)
        return 1
    if args.limit < 1:
        parser.error("--limit must be at least 1")

    state, submission = run(
        api_key, limit=args.limit, base_url=args.base_url, dry_run=args.dry_run,
    )
    if args.dry_run:
        print(json.dumps(state.payload(), indent=2))
    elif submission is not None and not submission["success"]:
        # The collection still completed; the failure is only reported
        logger.warning(f"Submission failed: {submission['error']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
