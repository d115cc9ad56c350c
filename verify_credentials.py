"""
Quick script to verify your assessment API key before running the full pass.
"""
import sys

import requests

from triage.api import REQUEST_TIMEOUT_SECONDS, create_session, get_api_key, get_base_url
from triage.ingest.patients import parse_page

print("=" * 80)
print("Assessment API Credentials Verification")
print("=" * 80)
print()

base_url = get_base_url()
api_key = get_api_key()

print("API Configuration:")
print("-" * 80)
print(f"URL:      {base_url}")
print(f"API key:  {'*' * len(api_key) if api_key else 'not set'}")
print()

if not api_key:
    print("✗ API_KEY is not set. Add it to .env or the environment.")
    sys.exit(1)

print("Testing patients endpoint...")
ok = False
with create_session(api_key) as session:
    try:
        # Single request, no backoff: we want to see the raw outcome
        r = session.get(
            f"{base_url}/patients",
            params={"page": 1, "limit": 1},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        if r.status_code in (401, 403):
            print(f"✗ API key rejected (status {r.status_code})")
        elif r.status_code in (429, 500, 502, 503):
            print(f"~ Key not rejected, but the service is busy (status {r.status_code}); try again shortly")
            ok = True
        else:
            r.raise_for_status()
            page = parse_page(r.json())
            print("✓ Patients endpoint reachable!")
            print(f"  - Records on page 1: {len(page.records)}")
            if page.pagination is not None:
                print(f"  - Reported total:    {page.pagination.total}")
                print(f"  - hasNext:           {page.pagination.has_next}")
            ok = True
    except (requests.RequestException, ValueError) as e:
        print(f"✗ Request failed: {e}")

print()
print("=" * 80)
print("Summary")
print("=" * 80)
print()
if ok:
    print("Credentials look good. You're ready to run:")
    print()
    print("  python -m triage.run_assessment --dry-run")
else:
    print("Fix the API key or network access before running the assessment.")
print()
print("=" * 80)
sys.exit(0 if ok else 1)
