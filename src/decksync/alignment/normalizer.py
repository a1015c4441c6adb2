import logging
from typing import Dict, List, Sequence, Set, Tuple

from decksync.alignment.dto import (
    OrderingViolation,
    TransitionCandidate,
    TransitionEvent,
)
from decksync.alignment.errors import OracleError
from decksync.alignment.timecode import parse_timestamp

logger = logging.getLogger(__name__)


def _to_events(candidates: Sequence[TransitionCandidate]) -> List[TransitionEvent]:
    events: List[TransitionEvent] = []
    seen: Set[Tuple[int, int, int]] = set()
    for candidate in candidates:
        try:
            seconds = parse_timestamp(candidate.timestamp)
        except ValueError as e:
            raise OracleError(
                f"Oracle returned an unparseable timestamp: {candidate.timestamp!r}",
                raw_response=candidate.model_dump_json(),
            ) from e
        key = (seconds, candidate.deckId, candidate.pageIndex)
        if key in seen:
            logger.debug("Dropping repeated candidate %s", key)
            continue
        seen.add(key)
        events.append(TransitionEvent(**candidate.model_dump(), seconds=seconds))
    # sorted() is stable, so equal timestamps keep the oracle's order
    return sorted(events, key=lambda e: e.seconds)


def check_ordering(
    events: Sequence[TransitionEvent], deck_sizes: Dict[int, int]
) -> List[OrderingViolation]:
    """
    Check time-sorted events against the deck invariants.

    Deck ids must form a run of 1s followed by a run of 2s, page indices must
    lie within their deck, and each slide should appear only once.
    """
    violations: List[OrderingViolation] = []
    seen: Set[Tuple[int, int]] = set()
    reached_deck_two = False

    for event in events:
        if event.deckId not in (1, 2):
            violations.append(
                OrderingViolation(
                    kind="unknown_deck",
                    message=f"{event.timestamp}: unknown deck {event.deckId}",
                    timestamp=event.timestamp,
                )
            )
            continue

        size = deck_sizes.get(event.deckId, 0)
        if not 1 <= event.pageIndex <= size:
            violations.append(
                OrderingViolation(
                    kind="page_out_of_range",
                    message=(
                        f"{event.timestamp}: Deck {event.deckId} page {event.pageIndex} "
                        f"outside 1..{size}"
                    ),
                    timestamp=event.timestamp,
                )
            )

        if event.deckId == 2:
            reached_deck_two = True
        elif reached_deck_two:
            violations.append(
                OrderingViolation(
                    kind="deck_regression",
                    message=f"{event.timestamp}: Deck 1 slide shown after Deck 2 started",
                    timestamp=event.timestamp,
                )
            )

        key = (event.deckId, event.pageIndex)
        if key in seen:
            violations.append(
                OrderingViolation(
                    kind="duplicate",
                    message=(
                        f"{event.timestamp}: Deck {event.deckId} page {event.pageIndex} "
                        "reported more than once"
                    ),
                    timestamp=event.timestamp,
                )
            )
        seen.add(key)

    return violations


def normalize_transitions(
    candidates: Sequence[TransitionCandidate], deck_sizes: Dict[int, int]
) -> Tuple[List[TransitionEvent], List[OrderingViolation]]:
    """
    Sort candidates by elapsed time and flag every invariant they break.

    Flagged events are kept; the caller decides whether violations are fatal.
    """
    events = _to_events(candidates)
    violations = check_ordering(events, deck_sizes)
    for violation in violations:
        logger.warning("Ordering violation (%s): %s", violation.kind, violation.message)
    return events, violations
