# pylint: disable=invalid-name
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from decksync.alignment.timecode import format_timestamp


@dataclass(frozen=True)
class Page:
    index: int
    image: bytes


@dataclass(frozen=True)
class Deck:
    deck_id: int
    source: str
    pages: Tuple[Page, ...]

    def __len__(self) -> int:
        return len(self.pages)


@dataclass(frozen=True)
class FrameSample:
    seconds: float
    image: bytes

    @property
    def timestamp(self) -> str:
        return format_timestamp(self.seconds)


@dataclass(frozen=True)
class DeckLabel:
    deck_id: int
    text: str


@dataclass(frozen=True)
class PageEntry:
    deck_id: int
    page_index: int
    image: bytes

    @property
    def caption(self) -> str:
        return f"Deck {self.deck_id} Page {self.page_index}"


@dataclass(frozen=True)
class FrameLabel:
    """Section header (no timestamp) or the caption preceding one frame."""

    text: str
    timestamp: Optional[str] = None

    @classmethod
    def for_timestamp(cls, timestamp: str) -> "FrameLabel":
        return cls(text=f"[VIDEO_TIMESTAMP: {timestamp}]", timestamp=timestamp)


@dataclass(frozen=True)
class FrameEntry:
    timestamp: str
    image: bytes


@dataclass(frozen=True)
class Instructions:
    text: str


EvidenceEntry = Union[DeckLabel, PageEntry, FrameLabel, FrameEntry, Instructions]


@dataclass(frozen=True)
class EvidenceBundle:
    """Ordered evidence sent to the oracle.

    ``deck_sizes`` stays on this side of the oracle boundary; it is used to
    bound page indices during normalization.
    """

    entries: Tuple[EvidenceEntry, ...]
    deck_sizes: Dict[int, int] = field(default_factory=dict)

    @property
    def image_count(self) -> int:
        return sum(1 for e in self.entries if isinstance(e, (PageEntry, FrameEntry)))

    @property
    def frame_count(self) -> int:
        return sum(1 for e in self.entries if isinstance(e, FrameEntry))


Confidence = Literal["High", "Medium", "Low"]


class TransitionCandidate(BaseModel):
    timestamp: str
    deckId: int
    pageIndex: int
    title: str
    reasoning: str
    confidence: Confidence

    model_config = ConfigDict(extra="forbid")


class TransitionEvent(TransitionCandidate):
    seconds: int


ViolationKind = Literal[
    "unknown_deck", "page_out_of_range", "deck_regression", "duplicate"
]


class OrderingViolation(BaseModel):
    kind: ViolationKind
    message: str
    timestamp: Optional[str] = None


class AlignmentReport(BaseModel):
    transitions: List[TransitionEvent]
    violations: List[OrderingViolation] = Field(default_factory=list)
    deckSizes: Dict[int, int] = Field(default_factory=dict)
    frameCount: int = 0
    status: str = ""

    @property
    def is_valid(self) -> bool:
        return not self.violations


class AlignmentOptions(BaseModel):
    """In-process tuning knobs for one pipeline instance."""

    max_frames: int = Field(default=60, ge=1, alias="maxFrames")
    min_interval_seconds: float = Field(default=5.0, ge=1, alias="minIntervalSeconds")
    render_scale: float = Field(default=1.0, gt=0, alias="renderScale")
    jpeg_quality: int = Field(default=80, ge=1, le=100, alias="jpegQuality")
    frame_width: int = Field(default=480, ge=1)
    frame_height: int = Field(default=270, ge=1)
    strict_ordering: bool = False

    model_config = ConfigDict(populate_by_name=True, frozen=True)
