"""
Patient risk score: pure scoring rules
========================================

Scores one patient record from three vital-sign fields and flags the
record when any of them cannot be read.

Components
----------
  1. blood pressure  (0–3)  staged from "<systolic>/<diastolic>"
  2. temperature     (0–2)  fever bands in °F, sets ``is_fever``
  3. age             (0–2)  under 40 / 40–65 / over 65

A missing or unparseable field scores 0 and sets
``has_data_quality_issue``; nothing in here raises on bad input.

Usage
-----
    # Score ad-hoc readings
    python -m triage.compute.risk_scores 150/95 101.5 70
"""

from __future__ import annotations

import math
import re
import sys
from dataclasses import dataclass
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

# Total score at or above which a patient is high risk
HIGH_RISK_THRESHOLD = 4

# Blood pressure stage scores; stages are checked most severe first
BP_STAGE_2 = 3
BP_STAGE_1 = 2
BP_ELEVATED = 1

# Temperature bands (°F)
FEVER_LOW = 99.6
FEVER_HIGH_MAX = 100.9
HIGH_FEVER = 101.0
NORMAL_TEMP_MAX = 99.5

# Age bands (years)
AGE_MIDDLE_MIN = 40
AGE_MIDDLE_MAX = 65

# Leading numeric prefix, read the way a lenient parseInt/parseFloat does
_INT_PREFIX = re.compile(r"[+-]?\d+")
_FLOAT_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class ScoreResult:
    score: int
    is_fever: bool
    has_data_quality_issue: bool
    bp_score: int = 0
    temp_score: int = 0
    age_score: int = 0

    @property
    def is_high_risk(self) -> bool:
        return self.score >= HIGH_RISK_THRESHOLD


# ---------------------------------------------------------------------------
# Parsing helpers (pure functions, easily unit-tested)
# ---------------------------------------------------------------------------

def _as_text(value: Any) -> Optional[str]:
    # bool is an int subclass; True is not a reading
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return None


def parse_int(value: Any) -> Optional[int]:
    """Integer from the leading digits of *value*, or None when there are none."""
    text = _as_text(value)
    if not text:
        return None
    m = _INT_PREFIX.match(text)
    return int(m.group()) if m else None


def parse_float(value: Any) -> Optional[float]:
    """Finite float from the leading number in *value*, or None."""
    text = _as_text(value)
    if not text:
        return None
    m = _FLOAT_PREFIX.match(text)
    if not m:
        return None
    number = float(m.group())
    return number if math.isfinite(number) else None


def parse_blood_pressure(value: Any) -> Optional[tuple[int, int]]:
    """(systolic, diastolic) from ``"120/80"``; None when unreadable."""
    if not isinstance(value, str) or value.count("/") != 1:
        return None
    systolic_str, diastolic_str = value.split("/")
    systolic = parse_int(systolic_str)
    diastolic = parse_int(diastolic_str)
    if systolic is None or diastolic is None:
        return None
    return systolic, diastolic


# ---------------------------------------------------------------------------
# Component scores
# ---------------------------------------------------------------------------

def blood_pressure_score(systolic: int, diastolic: int) -> int:
    if systolic >= 140 or diastolic >= 90:
        return BP_STAGE_2
    if 130 <= systolic <= 139 or 80 <= diastolic <= 89:
        return BP_STAGE_1
    if 120 <= systolic <= 129 and diastolic < 80:
        return BP_ELEVATED
    return 0


def temperature_score(temp: float) -> tuple[int, bool]:
    """Return (score, is_fever). Readings between bands score 0."""
    if temp <= NORMAL_TEMP_MAX:
        return 0, False
    if FEVER_LOW <= temp <= FEVER_HIGH_MAX:
        return 1, True
    if temp >= HIGH_FEVER:
        return 2, True
    return 0, False


def age_score(age: int) -> int:
    if age < AGE_MIDDLE_MIN:
        return 0
    if age <= AGE_MIDDLE_MAX:
        return 1
    return 2


# ---------------------------------------------------------------------------
# Record score
# ---------------------------------------------------------------------------

def score(record: Any) -> ScoreResult:
    """
    Score one patient record.

    *record* is normally a dict with ``blood_pressure``, ``temperature`` and
    ``age``; anything else is scored as if every field were missing.
    """
    fields = record if isinstance(record, dict) else {}
    quality_issue = False

    bp = parse_blood_pressure(fields.get("blood_pressure"))
    if bp is None:
        quality_issue = True
        bp_points = 0
    else:
        bp_points = blood_pressure_score(*bp)

    temp = parse_float(fields.get("temperature"))
    if temp is None:
        quality_issue = True
        temp_points, fever = 0, False
    else:
        temp_points, fever = temperature_score(temp)

    age = parse_int(fields.get("age"))
    if age is None:
        quality_issue = True
        age_points = 0
    else:
        age_points = age_score(age)

    return ScoreResult(
        score=bp_points + temp_points + age_points,
        is_fever=fever,
        has_data_quality_issue=quality_issue,
        bp_score=bp_points,
        temp_score=temp_points,
        age_score=age_points,
    )


def main() -> None:
    if len(sys.argv) != 4:
        print("usage: python -m triage.compute.risk_scores BP TEMP AGE", file=sys.stderr)
        sys.exit(2)
    bp_arg, temp_arg, age_arg = sys.argv[1:]
    result = score({"blood_pressure": bp_arg, "temperature": temp_arg, "age": age_arg})
    print(f"score={result.score} (bp={result.bp_score}, temp={result.temp_score}, age={result.age_score})")
    print(f"high_risk={result.is_high_risk} fever={result.is_fever} "
          f"data_quality_issue={result.has_data_quality_issue}")


if __name__ == "__main__":
    main()
