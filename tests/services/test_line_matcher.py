# tests/services/test_line_matcher.py
from __future__ import annotations

import pytest

from qrtrace.domain.errors import LineNotFound
from qrtrace.domain.types import DocumentLine, DownstreamDocument
from qrtrace.services.line_matcher import find_line


def _doc(*lines) -> DownstreamDocument:
    return DownstreamDocument(
        doc_type="itemfulfillment",
        lines=[DocumentLine(item_id=i, location_id=loc) for i, loc in lines],
    )


def test_line_without_location_matches_any_scanned_location():
    assert find_line(_doc(("X", None)), "X", "Y") == 0


def test_first_match_wins():
    assert find_line(_doc(("X", None), ("X", None)), "X") == 0


def test_location_mismatch_is_skipped():
    doc = _doc(("X", "L1"), ("X", "L2"))
    assert find_line(doc, "X", "L2") == 1


def test_scan_without_location_takes_first_item_line():
    doc = _doc(("A", None), ("X", "L2"), ("X", "L3"))
    assert find_line(doc, "X", None) == 1


def test_item_must_match():
    with pytest.raises(LineNotFound) as ei:
        find_line(_doc(("A", None)), "X", item_name="Widget")
    assert ei.value.code == "ITEM_NOT_FOUND"
    assert "Widget" in ei.value.message


def test_only_mismatching_locations_is_not_found():
    with pytest.raises(LineNotFound):
        find_line(_doc(("X", "L1")), "X", "L9")


def test_empty_document():
    with pytest.raises(LineNotFound):
        find_line(_doc(), "X")
