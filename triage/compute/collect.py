"""
Collection pass: page through every patient, score each one and fold the
results into the three category sets the assessment API expects.

Pages that come back empty do not end pagination; they are queued and
fetched once more after the main pass. Only ``hasNext: true`` keeps the
main pass going.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from triage.compute.risk_scores import score
from triage.ingest.patients import Page

logger = logging.getLogger(__name__)

# Pause before every main-pass request
PRE_REQUEST_DELAY_SECONDS = 0.3

# Pause after every main-pass page that yielded records
POST_REQUEST_DELAY_SECONDS = 0.2

# Pause before each second-chance fetch of an empty page
RETRY_PAGE_DELAY_SECONDS = 0.5

PAYLOAD_KEYS = ("high_risk_patients", "fever_patients", "data_quality_issues")


@dataclass
class CollectionState:
    """Everything one collection pass accumulates."""

    records: list = field(default_factory=list)
    # dicts used as insertion-ordered sets
    high_risk: dict = field(default_factory=dict)
    fever: dict = field(default_factory=dict)
    data_quality: dict = field(default_factory=dict)
    expected_total: Optional[int] = None
    pages_retried: list = field(default_factory=list)
    pages_lost: list = field(default_factory=list)

    def add(self, record: Any) -> None:
        result = score(record)
        self.records.append(record)

        patient_id = record.get("patient_id") if isinstance(record, dict) else None
        if not isinstance(patient_id, str) or not patient_id:
            logger.warning(f"Patient record without an id, not classified: {record!r}")
            return
        logger.debug(
            f"{patient_id}: score={result.score} fever={result.is_fever} "
            f"data_quality_issue={result.has_data_quality_issue}"
        )

        if result.is_high_risk:
            self.high_risk.setdefault(patient_id, None)
        if result.is_fever:
            self.fever.setdefault(patient_id, None)
        if result.has_data_quality_issue:
            self.data_quality.setdefault(patient_id, None)

    def add_page(self, page: Page) -> None:
        for record in page.records:
            self.add(record)

    def payload(self) -> dict[str, list[str]]:
        high, fever, quality = PAYLOAD_KEYS
        return {
            high: list(self.high_risk),
            fever: list(self.fever),
            quality: list(self.data_quality),
        }

    def summary(self) -> dict[str, Any]:
        return {
            "patients": len(self.records),
            "expected_total": self.expected_total,
            "high_risk": len(self.high_risk),
            "fever": len(self.fever),
            "data_quality_issues": len(self.data_quality),
            "pages_retried": list(self.pages_retried),
            "pages_lost": list(self.pages_lost),
        }


def collect(
    fetch_page: Callable[[int], Page],
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> CollectionState:
    """
    Run one full collection pass.

    *fetch_page* takes a 1-based page number and returns a ``Page``; it must
    not raise for remote failures (``fetch_patients_page`` bound to a session
    and limit satisfies this).
    """
    state = CollectionState()
    page = 1
    has_next = True

    while has_next:
        sleep(PRE_REQUEST_DELAY_SECONDS)
        result = fetch_page(page)

        if result.pagination is not None and result.pagination.total:
            state.expected_total = result.pagination.total

        if result.is_empty:
            logger.warning(f"No patients found on page {page}, will retry later")
            state.pages_retried.append(page)
            page += 1
            continue

        state.add_page(result)
        has_next = result.pagination is not None and result.pagination.has_next is True
        page += 1
        sleep(POST_REQUEST_DELAY_SECONDS)

    if state.pages_retried:
        logger.info(f"Retrying {len(state.pages_retried)} empty page(s)")

    for retry_page in state.pages_retried:
        sleep(RETRY_PAGE_DELAY_SECONDS)
        result = fetch_page(retry_page)
        if result.is_empty:
            logger.warning(f"Final failure on page {retry_page}, skipping")
            state.pages_lost.append(retry_page)
            continue
        state.add_page(result)
        logger.info(f"Recovered page {retry_page} on second attempt")

    logger.info(f"Finished fetching patients: {len(state.records)} total")
    if state.expected_total and len(state.records) < state.expected_total:
        logger.warning(
            f"Expected {state.expected_total} patients but only retrieved {len(state.records)}"
        )

    return state
