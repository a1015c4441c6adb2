from typing import List, Sequence

from decksync.alignment.dto import (
    Deck,
    DeckLabel,
    EvidenceBundle,
    EvidenceEntry,
    FrameEntry,
    FrameLabel,
    FrameSample,
    Instructions,
    PageEntry,
)
from decksync.alignment.prompts.alignment_prompt import (
    alignment_instructions,
    deck_one_header,
    deck_two_header,
    frames_header,
)

_DECK_HEADERS = {1: deck_one_header, 2: deck_two_header}


def _deck_entries(deck: Deck) -> List[EvidenceEntry]:
    entries: List[EvidenceEntry] = [DeckLabel(deck.deck_id, _DECK_HEADERS[deck.deck_id])]
    expected = 1
    for page in deck.pages:
        if page.index != expected:
            raise ValueError(
                f"Deck {deck.deck_id} ({deck.source}) has page {page.index} where {expected} was expected"
            )
        entries.append(PageEntry(deck.deck_id, page.index, page.image))
        expected += 1
    return entries


def assemble_evidence(
    deck1: Deck, deck2: Deck, frames: Sequence[FrameSample]
) -> EvidenceBundle:
    """
    Merge both decks and the sampled frames into one ordered evidence bundle.

    Order: deck 1 label and pages, deck 2 label and pages, the frames label
    followed by one timestamp label and image per frame in ascending time,
    and finally the instruction block. The captions are the only way the
    oracle can report deck and page numbers back.
    """
    if deck1.deck_id != 1 or deck2.deck_id != 2:
        raise ValueError(
            f"Decks must be passed as deck 1 then deck 2, got {deck1.deck_id} and {deck2.deck_id}"
        )

    entries: List[EvidenceEntry] = []
    entries.extend(_deck_entries(deck1))
    entries.extend(_deck_entries(deck2))

    entries.append(FrameLabel(frames_header))
    previous = None
    for frame in frames:
        if previous is not None and frame.seconds <= previous:
            raise ValueError(
                f"Frame timestamps must be strictly increasing ({frame.timestamp} after {previous}s)"
            )
        entries.append(FrameLabel.for_timestamp(frame.timestamp))
        entries.append(FrameEntry(frame.timestamp, frame.image))
        previous = frame.seconds

    entries.append(Instructions(alignment_instructions))

    return EvidenceBundle(
        entries=tuple(entries),
        deck_sizes={deck1.deck_id: len(deck1), deck2.deck_id: len(deck2)},
    )
