"""
Unit tests for the collection pass.

Run:
    pytest triage/compute/test_collect.py -v
"""

from __future__ import annotations

import logging

import pytest

from triage.compute.collect import (
    POST_REQUEST_DELAY_SECONDS,
    PRE_REQUEST_DELAY_SECONDS,
    RETRY_PAGE_DELAY_SECONDS,
    CollectionState,
    collect,
)
from triage.ingest.patients import EMPTY_PAGE, Page, Pagination


def _patient(pid, bp="110/70", temp="98.0", age="30"):
    return {"patient_id": pid, "blood_pressure": bp, "temperature": temp, "age": age}


def _page(records, has_next=None, total=None):
    return Page(records=list(records), pagination=Pagination(total=total, has_next=has_next))


class ScriptedFetcher:
    """Returns queued pages per page number, in call order."""

    def __init__(self, script):
        self.script = {page: list(results) for page, results in script.items()}
        self.calls = []

    def __call__(self, page):
        self.calls.append(page)
        queued = self.script.get(page)
        if not queued:
            return EMPTY_PAGE
        return queued.pop(0)


def _collect(script):
    fetcher = ScriptedFetcher(script)
    sleeps = []
    state = collect(fetcher, sleep=sleeps.append)
    return state, fetcher, sleeps


# ---------------------------------------------------------------------------
# CollectionState
# ---------------------------------------------------------------------------

class TestCollectionState:
    def test_routes_into_category_sets(self):
        state = CollectionState()
        state.add(_patient("p1", bp="150/95", temp="101.5", age="70"))
        state.add(_patient("p2", temp="100.1"))
        state.add(_patient("p3", age="abc"))
        state.add(_patient("p4"))
        assert state.payload() == {
            "high_risk_patients": ["p1"],
            "fever_patients": ["p1", "p2"],
            "data_quality_issues": ["p3"],
        }
        assert len(state.records) == 4

    def test_id_in_all_three_sets(self):
        state = CollectionState()
        # bp 3 + temp 2 + age invalid = 5
        state.add(_patient("p1", bp="160/100", temp="102", age=None))
        payload = state.payload()
        assert payload["high_risk_patients"] == ["p1"]
        assert payload["fever_patients"] == ["p1"]
        assert payload["data_quality_issues"] == ["p1"]

    def test_duplicate_ids_counted_once(self):
        state = CollectionState()
        for _ in range(3):
            state.add(_patient("dup", bp="150/95", temp="101.5", age="70"))
        payload = state.payload()
        assert payload["high_risk_patients"] == ["dup"]
        assert payload["fever_patients"] == ["dup"]
        assert len(state.records) == 3

    def test_preserves_first_insertion_order(self):
        state = CollectionState()
        for pid in ("c", "a", "b", "a"):
            state.add(_patient(pid, temp="100.0"))
        assert state.payload()["fever_patients"] == ["c", "a", "b"]

    def test_record_without_id_is_counted_not_routed(self, caplog):
        state = CollectionState()
        with caplog.at_level(logging.WARNING):
            state.add({"blood_pressure": "150/95", "temperature": "101.5", "age": "70"})
            state.add(None)
        assert len(state.records) == 2
        assert all(not v for v in state.payload().values())
        assert "without an id" in caplog.text

    def test_summary(self):
        state = CollectionState(expected_total=10)
        state.add(_patient("p1", temp="100.0"))
        summary = state.summary()
        assert summary["patients"] == 1
        assert summary["expected_total"] == 10
        assert summary["fever"] == 1
        assert summary["high_risk"] == 0


# ---------------------------------------------------------------------------
# collect
# ---------------------------------------------------------------------------

class TestCollect:
    def test_follows_has_next_until_false(self):
        state, fetcher, _ = _collect({
            1: [_page([_patient("a")], has_next=True)],
            2: [_page([_patient("b")], has_next=True)],
            3: [_page([_patient("c")], has_next=False)],
        })
        assert fetcher.calls == [1, 2, 3]
        assert [r["patient_id"] for r in state.records] == ["a", "b", "c"]
        assert state.pages_retried == []

    def test_missing_has_next_stops_after_page(self):
        state, fetcher, _ = _collect({
            1: [_page([_patient("a")], has_next=None)],
            2: [_page([_patient("b")], has_next=False)],
        })
        assert fetcher.calls == [1]
        assert len(state.records) == 1

    def test_missing_pagination_stops_after_page(self):
        state, fetcher, _ = _collect({
            1: [Page(records=[_patient("a")], pagination=None)],
            2: [_page([_patient("b")], has_next=False)],
        })
        assert fetcher.calls == [1]

    def test_empty_page_does_not_stop_and_is_retried_once(self):
        state, fetcher, _ = _collect({
            1: [_page([_patient("a")], has_next=True)],
            2: [EMPTY_PAGE, _page([_patient("b")], has_next=True)],
            3: [_page([_patient("c")], has_next=False)],
        })
        assert fetcher.calls == [1, 2, 3, 2]
        assert state.pages_retried == [2]
        assert state.pages_lost == []
        assert [r["patient_id"] for r in state.records] == ["a", "c", "b"]

    def test_empty_page_lost_after_second_failure(self, caplog):
        with caplog.at_level(logging.WARNING):
            state, fetcher, _ = _collect({
                1: [_page([_patient("a")], has_next=True)],
                2: [EMPTY_PAGE, EMPTY_PAGE],
                3: [_page([_patient("c")], has_next=False)],
            })
        assert fetcher.calls == [1, 2, 3, 2]
        assert state.pages_lost == [2]
        assert "Final failure on page 2" in caplog.text

    def test_retry_pass_ignores_has_next(self):
        state, fetcher, _ = _collect({
            1: [EMPTY_PAGE, _page([_patient("a")], has_next=True)],
            2: [_page([_patient("b")], has_next=False)],
        })
        # page 1's second answer says hasNext, but nothing beyond page 2 is fetched
        assert fetcher.calls == [1, 2, 1]
        assert len(state.records) == 2

    def test_overlapping_pages_deduplicated(self):
        state, _, _ = _collect({
            1: [EMPTY_PAGE, _page([_patient("x", temp="101.0"), _patient("y", age="")], has_next=False)],
            2: [_page([_patient("x", temp="101.0"), _patient("y", age="")], has_next=False)],
        })
        payload = state.payload()
        assert payload["fever_patients"] == ["x"]
        assert payload["data_quality_issues"] == ["y"]
        assert len(state.records) == 4

    def test_delays(self):
        _, _, sleeps = _collect({
            1: [_page([_patient("a")], has_next=True)],
            2: [EMPTY_PAGE, _page([_patient("b")])],
            3: [_page([_patient("c")], has_next=False)],
        })
        assert sleeps == [
            PRE_REQUEST_DELAY_SECONDS, POST_REQUEST_DELAY_SECONDS,
            PRE_REQUEST_DELAY_SECONDS,
            PRE_REQUEST_DELAY_SECONDS, POST_REQUEST_DELAY_SECONDS,
            RETRY_PAGE_DELAY_SECONDS,
        ]

    def test_expected_total_remembered(self):
        state, _, _ = _collect({
            1: [_page([_patient("a")], has_next=True, total=2)],
            2: [_page([_patient("b")], has_next=False)],
        })
        assert state.expected_total == 2

    def test_shortfall_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            state, _, _ = _collect({
                1: [_page([_patient("a")], has_next=False, total=5)],
            })
        assert state.expected_total == 5
        assert "Expected 5 patients but only retrieved 1" in caplog.text

    def test_no_shortfall_warning_when_complete(self, caplog):
        with caplog.at_level(logging.WARNING):
            _collect({1: [_page([_patient("a"), _patient("b")], has_next=False, total=2)]})
        assert "Expected" not in caplog.text

    def test_end_to_end_classification(self):
        state, _, _ = _collect({
            1: [_page([
                _patient("p1", bp="150/95", temp="101.5", age="70"),
                _patient("p2", bp="120/75", temp="98.6", age="25"),
            ], has_next=True, total=4)],
            2: [_page([
                _patient("p3", bp="N/A", temp="99.9", age="45"),
                _patient("p4", bp="135/85", temp="", age="67"),
            ], has_next=False)],
        })
        assert state.payload() == {
            "high_risk_patients": ["p1", "p4"],
            "fever_patients": ["p1", "p3"],
            "data_quality_issues": ["p3", "p4"],
        }

    @pytest.mark.parametrize("has_next", [None, False])
    def test_single_empty_first_page_then_stop(self, has_next):
        # page 1 empty, page 2 ends pagination; page 1 retried once at the end
        state, fetcher, _ = _collect({
            1: [EMPTY_PAGE, EMPTY_PAGE],
            2: [_page([_patient("a")], has_next=has_next)],
        })
        assert fetcher.calls == [1, 2, 1]
        assert state.pages_lost == [1]
