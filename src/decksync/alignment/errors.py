from typing import List, Optional, Sequence


class AlignmentError(Exception):
    """Base class for failures of a deck alignment run."""


class InputMissingError(AlignmentError):
    """One or more required source files are absent."""

    def __init__(self, missing: Sequence[str]):
        self.missing: List[str] = list(missing)
        super().__init__(f"Missing required input(s): {', '.join(self.missing)}")


class ExtractionError(AlignmentError):
    """Rasterizing a page or capturing a video frame failed."""

    def __init__(
        self,
        source: str,
        reason: str,
        page: Optional[int] = None,
        timestamp: Optional[str] = None,
    ):
        self.source = source
        self.reason = reason
        self.page = page
        self.timestamp = timestamp

        location = ""
        if page is not None:
            location = f" page {page}"
        elif timestamp is not None:
            location = f" at {timestamp}"
        super().__init__(f"Extraction failed for {source}{location}: {reason}")


class OracleError(AlignmentError):
    """The reasoning service failed or answered outside its output contract."""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        self.raw_response = raw_response
        super().__init__(message)


class OrderingViolationError(AlignmentError):
    """Raised instead of returning flagged transitions when ordering is strict."""

    def __init__(self, violations):
        self.violations = list(violations)
        summary = "; ".join(v.message for v in self.violations)
        super().__init__(f"Transitions violate ordering invariants: {summary}")
