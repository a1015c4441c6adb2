"""
LangFuse tracing for deck alignment runs.

Provides:
- TracingContext for run metadata propagation
- trace_span() context manager for pipeline phases (extraction, normalization)
- trace_generation() context manager for the oracle call
- Proper nesting within one alignment session
"""

import logging
import os
import threading
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Optional

import langfuse

logger = logging.getLogger(__name__)

_langfuse_client: Optional[Any] = None
_is_initialized = False
_init_lock = threading.Lock()


def _is_enabled() -> bool:
    """Check if LangFuse tracing is enabled via environment variables."""
    return os.environ.get("LANGFUSE_ENABLED", "").lower() == "true"


def init_langfuse() -> Optional[Any]:
    """
    Initialize the LangFuse client from environment variables.

    Required env vars when enabled:
    - LANGFUSE_ENABLED=true
    - LANGFUSE_PUBLIC_KEY
    - LANGFUSE_SECRET_KEY
    - LANGFUSE_HOST (optional, defaults to cloud.langfuse.com)
    """
    global _langfuse_client, _is_initialized

    if _is_initialized:
        return _langfuse_client

    with _init_lock:
        if _is_initialized:
            return _langfuse_client

        _is_initialized = True

        if not _is_enabled():
            logger.info("LangFuse tracing is disabled")
            return None

        public_key = os.environ.get("LANGFUSE_PUBLIC_KEY")
        secret_key = os.environ.get("LANGFUSE_SECRET_KEY")
        host = os.environ.get("LANGFUSE_HOST", "https://cloud.langfuse.com")

        if not public_key or not secret_key:
            logger.error(
                "LangFuse enabled but missing LANGFUSE_PUBLIC_KEY or LANGFUSE_SECRET_KEY"
            )
            return None

        try:
            _langfuse_client = langfuse.Langfuse(
                public_key=public_key,
                secret_key=secret_key,
                host=host,
            )
            logger.info("LangFuse client initialized (host: %s)", host)
        except Exception as e:
            logger.error("Failed to initialize LangFuse: %s", e)
            _langfuse_client = None
        return _langfuse_client


def get_langfuse_client() -> Optional[Any]:
    """Get the LangFuse client (initializes if needed)."""
    if _langfuse_client is None and not _is_initialized:
        init_langfuse()
    return _langfuse_client


def shutdown_langfuse():
    """Flush and shut down the LangFuse client."""
    global _langfuse_client, _is_initialized
    with _init_lock:
        if _langfuse_client:
            try:
                _langfuse_client.shutdown()
                logger.info("LangFuse client shutdown")
            except Exception as e:
                logger.error("Error shutting down LangFuse: %s", e)
            _langfuse_client = None
        _is_initialized = False


@dataclass
class TracingContext:
    """Run-level metadata attached to every span of one alignment."""

    job_id: str
    video_name: Optional[str] = None
    deck_names: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    extra_metadata: dict[str, Any] = field(default_factory=dict)

    def to_langfuse_params(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {"pipeline": "deck_alignment"}
        if self.video_name:
            metadata["video"] = self.video_name
        if self.deck_names:
            metadata["decks"] = list(self.deck_names)
        metadata.update(self.extra_metadata)
        return {
            "session_id": self.job_id,
            "tags": self.tags,
            "metadata": metadata,
        }


_context_var: ContextVar[Optional[TracingContext]] = ContextVar(
    "tracing_context", default=None
)


def set_current_context(ctx: TracingContext) -> None:
    _context_var.set(ctx)


def get_current_context() -> Optional[TracingContext]:
    return _context_var.get()


def clear_current_context() -> None:
    _context_var.set(None)


class _ObservationTracer:
    """Wraps a LangFuse span or generation; every method is a no-op when disabled."""

    def __init__(self):
        self.observation = None
        self.start_time = time.time()
        self._output: Optional[Any] = None

    def set_output(self, output: Any) -> None:
        self._output = output

    def end(
        self,
        output: Optional[Any] = None,
        usage: Optional[dict[str, int]] = None,
        error: Optional[str] = None,
    ):
        if not self.observation:
            return
        try:
            end_kwargs: dict[str, Any] = {"level": "DEFAULT"}
            result = output if output is not None else self._output
            if result is not None:
                end_kwargs["output"] = result
            if usage:
                end_kwargs["usage"] = usage
            if error:
                end_kwargs["status_message"] = error
                end_kwargs["level"] = "ERROR"
            self.observation.end(**end_kwargs)
        except Exception as e:
            logger.debug("Failed to end trace: %s", e)
        self.observation = None


def _merged_metadata(metadata: Optional[dict[str, Any]]) -> dict[str, Any]:
    combined = {**(metadata or {})}
    ctx = get_current_context()
    if ctx:
        combined.update(ctx.to_langfuse_params().get("metadata", {}))
    return combined


@contextmanager
def trace_span(
    name: str,
    input_data: Optional[Any] = None,
    metadata: Optional[dict[str, Any]] = None,
):
    """
    Context manager for tracing one pipeline phase.

    Example:
        with trace_span("Frame Sampling", {"video": path}) as span:
            frames = ...
            span.set_output({"frames": len(frames)})

    Exceptions propagate; the span is closed with ERROR level first.
    """
    client = get_langfuse_client()
    ctx = get_current_context()
    tracer = _ObservationTracer()

    if client and _is_enabled():
        try:
            tracer.observation = client.span(
                name=name,
                input=input_data,
                metadata=_merged_metadata(metadata),
                session_id=ctx.job_id if ctx else None,
                tags=ctx.tags if ctx else None,
            )
        except Exception as e:
            logger.debug("Failed to create span trace: %s", e)

    try:
        yield tracer
    except BaseException as e:
        tracer.end(error=str(e) or type(e).__name__)
        raise
    tracer.end()


@contextmanager
def trace_generation(
    name: str,
    model: str,
    input_data: Optional[Any] = None,
    metadata: Optional[dict[str, Any]] = None,
):
    """
    Context manager for tracing a direct LLM API call.

    Example:
        with trace_generation("Slide Alignment", "gpt-4.1", {"images": 42}) as gen:
            response = await client.chat.completions.create(...)
            gen.end(output=response.choices[0].message.content)
    """
    client = get_langfuse_client()
    ctx = get_current_context()
    tracer = _ObservationTracer()

    if client and _is_enabled():
        try:
            tracer.observation = client.generation(
                name=name,
                model=model,
                input=input_data,
                metadata=_merged_metadata(metadata),
                session_id=ctx.job_id if ctx else None,
                tags=ctx.tags if ctx else None,
            )
        except Exception as e:
            logger.debug("Failed to create generation trace: %s", e)

    try:
        yield tracer
    except BaseException as e:
        tracer.end(error=str(e) or type(e).__name__)
        raise
    tracer.end()
