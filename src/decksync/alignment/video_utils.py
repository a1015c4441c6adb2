import asyncio
import logging
import os
import threading
from typing import List, Optional

import cv2

from decksync.alignment.dto import FrameSample
from decksync.alignment.errors import ExtractionError
from decksync.alignment.timecode import format_timestamp

logger = logging.getLogger(__name__)


def compute_sampling_interval(
    duration: float, max_frames: int = 60, min_interval: float = 5.0
) -> float:
    """
    Sample every ``min_interval`` seconds unless that yields more than
    ``max_frames`` samples; then widen the interval to span the full duration.
    """
    return max(min_interval, duration / max_frames)


def sample_timestamps(
    duration: float, max_frames: int = 60, min_interval: float = 5.0
) -> List[float]:
    """Return ``k * step`` for every ``k`` with ``k * step < duration``, capped at ``max_frames``."""
    if duration <= 0:
        return []
    step = compute_sampling_interval(duration, max_frames, min_interval)
    timestamps: List[float] = []
    k = 0
    # Cap at max_frames even when float error keeps k * step below duration.
    while k < max_frames:
        t = k * step
        if t >= duration:
            break
        timestamps.append(t)
        k += 1
    return timestamps


class _VideoFrameGrabber:
    """
    Seek-and-capture access to one video file.

    The capture handle is stateful, so ``capture`` calls must never overlap;
    the lock also keeps ``close`` from releasing it mid-read.
    """

    def __init__(self, video_path: str, width: int, height: int, jpeg_quality: int):
        self.video_path = video_path
        self.source = os.path.basename(video_path)
        self.size = (width, height)
        self.jpeg_quality = jpeg_quality
        self.fps = 0.0
        self.cap: Optional[cv2.VideoCapture] = None
        self._lock = threading.Lock()

    def open(self) -> float:
        """Open the video and return its duration in seconds."""
        with self._lock:
            self.cap = cv2.VideoCapture(self.video_path)
            if not self.cap.isOpened():
                raise ExtractionError(self.source, "cannot open video")

            self.fps = self.cap.get(cv2.CAP_PROP_FPS) or 0.0
            frame_count = self.cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0
            if self.fps <= 0 or frame_count <= 0:
                raise ExtractionError(
                    self.source,
                    f"video metadata unavailable (fps={self.fps}, frames={frame_count})",
                )
            return frame_count / self.fps

    def capture(self, seconds: float) -> bytes:
        timestamp = format_timestamp(seconds)
        with self._lock:
            if self.cap is None:
                raise ExtractionError(self.source, "video is closed", timestamp=timestamp)

            self.cap.set(cv2.CAP_PROP_POS_FRAMES, int(seconds * self.fps))
            ret, frame = self.cap.read()
            if not ret or frame is None:
                raise ExtractionError(
                    self.source, "could not read frame", timestamp=timestamp
                )

            resized = cv2.resize(frame, self.size, interpolation=cv2.INTER_AREA)
            success, buffer = cv2.imencode(
                ".jpg", resized, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality]
            )
            if not success:
                raise ExtractionError(
                    self.source, "could not encode frame", timestamp=timestamp
                )
            return buffer.tobytes()

    def close(self) -> None:
        with self._lock:
            if self.cap is not None:
                self.cap.release()
                self.cap = None


async def sample_video_frames(
    video_path: str,
    max_frames: int = 60,
    min_interval: float = 5.0,
    width: int = 480,
    height: int = 270,
    jpeg_quality: int = 80,
    job_id: Optional[str] = None,
) -> List[FrameSample]:
    """
    Capture one downscaled JPEG frame per sampling timestamp.

    Seeks run strictly one after another. A failed capture aborts the whole
    sampling with :class:`ExtractionError` naming the timestamp.
    """
    grabber = _VideoFrameGrabber(video_path, width, height, jpeg_quality)
    try:
        duration = await asyncio.to_thread(grabber.open)
        timestamps = sample_timestamps(duration, max_frames, min_interval)
        logger.info(
            "[Job %s] Sampling %s: duration=%.1fs, interval=%.2fs, frames=%d",
            job_id,
            grabber.source,
            duration,
            compute_sampling_interval(duration, max_frames, min_interval),
            len(timestamps),
        )

        frames: List[FrameSample] = []
        for seconds in timestamps:
            image = await asyncio.to_thread(grabber.capture, seconds)
            frames.append(FrameSample(seconds=seconds, image=image))
    finally:
        await asyncio.to_thread(grabber.close)

    return frames
