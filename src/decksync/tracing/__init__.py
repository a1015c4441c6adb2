"""
LangFuse tracing for decksync.

Usage:
    init_langfuse()

    set_current_context(TracingContext(job_id, video_name="talk.mp4"))
    with trace_span("Deck Extraction"):
        ...
    with trace_generation("Slide Alignment", model, input_data) as gen:
        response = ...
        gen.end(output=response)

    shutdown_langfuse()
"""

from decksync.tracing.langfuse_tracer import (
    TracingContext,
    clear_current_context,
    get_current_context,
    get_langfuse_client,
    init_langfuse,
    set_current_context,
    shutdown_langfuse,
    trace_generation,
    trace_span,
)
