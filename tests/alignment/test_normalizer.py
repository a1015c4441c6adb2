import pytest

from alignment_helpers import candidate
from decksync.alignment.errors import OracleError
from decksync.alignment.normalizer import normalize_transitions

DECK_SIZES = {1: 3, 2: 2}


def _kinds(violations):
    return [v.kind for v in violations]


def test_sorts_by_elapsed_time():
    events, violations = normalize_transitions(
        [candidate("00:12", 1, 2), candidate("00:03", 1, 1), candidate("00:20", 2, 1)],
        DECK_SIZES,
    )

    assert [(e.timestamp, e.deckId, e.pageIndex) for e in events] == [
        ("00:03", 1, 1),
        ("00:12", 1, 2),
        ("00:20", 2, 1),
    ]
    assert [e.seconds for e in events] == [3, 12, 20]
    assert violations == []


def test_minutes_are_compared_numerically():
    events, _ = normalize_transitions(
        [candidate("10:00", 2, 1), candidate("09:59", 1, 3)], DECK_SIZES
    )
    assert [e.seconds for e in events] == [599, 600]


@pytest.mark.parametrize(
    "slides",
    [
        [(1, 1), (1, 2), (2, 1), (2, 2)],
        [(1, 1), (1, 2), (1, 3)],
        [(2, 1), (2, 2)],
        [(1, 3)],
        [],
    ],
)
def test_single_ascending_deck_run_is_valid(slides):
    candidates = [
        candidate(f"00:{10 + i:02d}", deck, page) for i, (deck, page) in enumerate(slides)
    ]

    events, violations = normalize_transitions(candidates, DECK_SIZES)

    assert len(events) == len(slides)
    assert violations == []


def test_deck_regression_is_flagged_not_dropped():
    events, violations = normalize_transitions(
        [candidate("00:05", 1, 1), candidate("00:10", 2, 1), candidate("00:15", 1, 2)],
        DECK_SIZES,
    )

    assert len(events) == 3
    assert _kinds(violations) == ["deck_regression"]
    assert violations[0].timestamp == "00:15"


@pytest.mark.parametrize("deck_id, page_index", [(1, 0), (1, 4), (2, 3), (2, -1)])
def test_page_outside_deck_is_flagged(deck_id, page_index):
    events, violations = normalize_transitions(
        [candidate("00:05", deck_id, page_index)], DECK_SIZES
    )

    assert len(events) == 1
    assert _kinds(violations) == ["page_out_of_range"]


def test_unknown_deck_is_flagged():
    _, violations = normalize_transitions([candidate("00:05", 3, 1)], DECK_SIZES)
    assert _kinds(violations) == ["unknown_deck"]


def test_repeated_slide_is_flagged():
    _, violations = normalize_transitions(
        [candidate("00:05", 1, 1), candidate("00:25", 1, 1)], DECK_SIZES
    )
    assert _kinds(violations) == ["duplicate"]


def test_identical_candidates_are_collapsed():
    events, violations = normalize_transitions(
        [candidate("00:05", 1, 1), candidate("00:05", 1, 1, confidence="Low")],
        DECK_SIZES,
    )
    assert len(events) == 1
    assert events[0].confidence == "High"
    assert violations == []


def test_unparseable_timestamp_is_an_oracle_error():
    with pytest.raises(OracleError) as exc_info:
        normalize_transitions([candidate("about a minute", 1, 1)], DECK_SIZES)
    assert "about a minute" in exc_info.value.raw_response
