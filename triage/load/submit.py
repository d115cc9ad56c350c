"""
Assessment submission: one POST of the three patient-id lists.

The submission is attempted exactly once. A failure is logged and reported
in the returned result; it never raises and never undoes the collection.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import requests

from triage.api import REQUEST_TIMEOUT_SECONDS, get_base_url

logger = logging.getLogger(__name__)


def submit_assessment(
    session: requests.Session,
    payload: Dict[str, list],
    base_url: Optional[str] = None,
) -> Dict[str, Any]:
    """POST *payload* to ``/submit-assessment`` and describe the outcome."""
    url = f"{base_url or get_base_url()}/submit-assessment"
    result: Dict[str, Any] = {
        'url': url,
        'timestamp': datetime.now().isoformat(),
        'success': False,
        'status_code': None,
        'response': None,
        'error': None,
    }

    counts = {k: len(v) for k, v in payload.items()}
    logger.info(f"Submitting assessment to {url}: {counts}")
    try:
        response = session.post(url, json=payload, timeout=REQUEST_TIMEOUT_SECONDS)
        result['status_code'] = response.status_code
        response.raise_for_status()
    except requests.RequestException as e:
        result['error'] = str(e)
        logger.error(f"Failed to submit assessment: {e}")
        return result

    try:
        result['response'] = response.json()
    except ValueError:
        result['response'] = response.text

    result['success'] = True
    logger.info(f"Assessment submitted successfully: {result['response']}")
    return result
