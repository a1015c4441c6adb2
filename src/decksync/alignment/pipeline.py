"""
Deck alignment pipeline.

One run moves through ``IDLE -> EXTRACTING -> ASSEMBLING -> AWAITING_ORACLE ->
NORMALIZING -> DONE``; any error ends in ``FAILED`` and cancellation in
``CANCELLED``. Both decks and the video are extracted concurrently; the first
extraction failure cancels the other two and no evidence is assembled.
"""

import asyncio
import logging
import os
from enum import Enum
from typing import Callable, List, Optional, Tuple

from decksync.alignment.dto import AlignmentOptions, AlignmentReport, Deck, FrameSample
from decksync.alignment.errors import InputMissingError, OrderingViolationError
from decksync.alignment.evidence import assemble_evidence
from decksync.alignment.normalizer import normalize_transitions
from decksync.alignment.oracle import AlignmentOracle
from decksync.alignment.pdf_utils import rasterize_deck
from decksync.alignment.video_utils import sample_video_frames
from decksync.tracing import trace_span

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    ASSEMBLING = "assembling"
    AWAITING_ORACLE = "awaiting_oracle"
    NORMALIZING = "normalizing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


StatusCallback = Callable[[PipelineState, str], None]


def check_inputs(video_path: str, deck1_path: str, deck2_path: str) -> None:
    """Reject the run before any extraction if a source file is absent."""
    missing = [
        label
        for label, path in (
            ("video", video_path),
            ("deck1", deck1_path),
            ("deck2", deck2_path),
        )
        if not path or not os.path.isfile(path)
    ]
    if missing:
        raise InputMissingError(missing)


class AlignmentPipeline:
    """Single-use orchestrator for one video against two decks."""

    def __init__(
        self,
        oracle: AlignmentOracle,
        options: Optional[AlignmentOptions] = None,
        on_status: Optional[StatusCallback] = None,
        job_id: Optional[str] = None,
    ):
        self.oracle = oracle
        self.options = options or AlignmentOptions()
        self.on_status = on_status
        self.job_id = job_id
        self.state = PipelineState.IDLE
        self.status = ""

    def _set_state(self, state: PipelineState, message: str) -> None:
        self.state = state
        self.status = message
        logger.info("[Job %s] %s: %s", self.job_id, state.value, message)
        if self.on_status:
            self.on_status(state, message)

    async def _extract(
        self, video_path: str, deck1_path: str, deck2_path: str
    ) -> Tuple[Deck, Deck, List[FrameSample]]:
        opts = self.options
        tasks = [
            asyncio.create_task(
                rasterize_deck(
                    deck1_path, 1, opts.render_scale, opts.jpeg_quality, self.job_id
                )
            ),
            asyncio.create_task(
                rasterize_deck(
                    deck2_path, 2, opts.render_scale, opts.jpeg_quality, self.job_id
                )
            ),
            asyncio.create_task(
                sample_video_frames(
                    video_path,
                    max_frames=opts.max_frames,
                    min_interval=opts.min_interval_seconds,
                    width=opts.frame_width,
                    height=opts.frame_height,
                    jpeg_quality=opts.jpeg_quality,
                    job_id=self.job_id,
                )
            ),
        ]
        try:
            deck1, deck2, frames = await asyncio.gather(*tasks)
        except BaseException:
            # Stop the siblings and let them release their media handles before propagating.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return deck1, deck2, frames

    async def run(
        self, video_path: str, deck1_path: str, deck2_path: str
    ) -> AlignmentReport:
        if self.state != PipelineState.IDLE:
            raise RuntimeError(f"Pipeline already used (state={self.state.value})")

        try:
            check_inputs(video_path, deck1_path, deck2_path)

            self._set_state(
                PipelineState.EXTRACTING,
                "Processing files simultaneously (decks and video)...",
            )
            with trace_span(
                "Extraction",
                input_data={
                    "video": os.path.basename(video_path),
                    "decks": [
                        os.path.basename(deck1_path),
                        os.path.basename(deck2_path),
                    ],
                },
            ) as span:
                deck1, deck2, frames = await self._extract(
                    video_path, deck1_path, deck2_path
                )
                span.set_output(
                    {"deck1": len(deck1), "deck2": len(deck2), "frames": len(frames)}
                )

            self._set_state(
                PipelineState.ASSEMBLING,
                f"Extracted: {len(deck1)} pages (Deck 1), {len(deck2)} pages (Deck 2), "
                f"{len(frames)} frames (Video).",
            )
            bundle = assemble_evidence(deck1, deck2, frames)

            self._set_state(
                PipelineState.AWAITING_ORACLE,
                f"Analyzing {bundle.image_count} images...",
            )
            candidates = await self.oracle.align(bundle)

            self._set_state(
                PipelineState.NORMALIZING,
                f"Normalizing {len(candidates)} candidate transition(s)...",
            )
            with trace_span("Normalization", input_data={"candidates": len(candidates)}):
                events, violations = normalize_transitions(
                    candidates, bundle.deck_sizes
                )
            if violations and self.options.strict_ordering:
                raise OrderingViolationError(violations)

            message = "Analysis complete." if events else "No transitions found."
            if violations:
                message += f" {len(violations)} ordering warning(s)."

            report = AlignmentReport(
                transitions=events,
                violations=violations,
                deckSizes=bundle.deck_sizes,
                frameCount=bundle.frame_count,
                status=message,
            )
            self._set_state(PipelineState.DONE, message)
            return report

        except asyncio.CancelledError:
            self._set_state(PipelineState.CANCELLED, "Analysis cancelled.")
            raise
        except Exception as e:
            logger.error("[Job %s] Alignment failed: %s", self.job_id, e, exc_info=True)
            self._set_state(PipelineState.FAILED, f"Error during analysis: {e}")
            raise


async def align_presentation(
    video_path: str,
    deck1_path: str,
    deck2_path: str,
    oracle: AlignmentOracle,
    options: Optional[AlignmentOptions] = None,
    on_status: Optional[StatusCallback] = None,
    job_id: Optional[str] = None,
) -> AlignmentReport:
    """Run one alignment with a fresh pipeline."""
    pipeline = AlignmentPipeline(oracle, options, on_status=on_status, job_id=job_id)
    return await pipeline.run(video_path, deck1_path, deck2_path)
