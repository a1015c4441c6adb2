import base64
import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import openai
from pydantic import TypeAdapter, ValidationError

from decksync.alignment.dto import (
    DeckLabel,
    EvidenceBundle,
    FrameEntry,
    FrameLabel,
    Instructions,
    PageEntry,
    TransitionCandidate,
)
from decksync.alignment.errors import OracleError
from decksync.llm.llm_config import LLMConfig
from decksync.llm.openai_client import get_openai_client
from decksync.tracing import trace_generation

logger = logging.getLogger(__name__)

TRANSITIONS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "transitions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "timestamp": {"type": "string"},
                    "deckId": {"type": "integer"},
                    "pageIndex": {"type": "integer"},
                    "title": {"type": "string"},
                    "reasoning": {"type": "string"},
                    "confidence": {
                        "type": "string",
                        "enum": ["High", "Medium", "Low"],
                    },
                },
                "required": [
                    "timestamp",
                    "deckId",
                    "pageIndex",
                    "title",
                    "reasoning",
                    "confidence",
                ],
                "additionalProperties": False,
            },
        }
    },
    "required": ["transitions"],
    "additionalProperties": False,
}

_CANDIDATE_LIST = TypeAdapter(List[TransitionCandidate])


class AlignmentOracle(Protocol):
    """Anything that turns an evidence bundle into candidate transitions."""

    async def align(self, bundle: EvidenceBundle) -> List[TransitionCandidate]: ...


def _image_part(image: bytes) -> Dict[str, Any]:
    image_b64 = base64.b64encode(image).decode("utf-8")
    return {
        "type": "image_url",
        "image_url": {"url": f"data:image/jpeg;base64,{image_b64}", "detail": "auto"},
    }


def _text_part(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def build_message_content(bundle: EvidenceBundle) -> List[Dict[str, Any]]:
    """Flatten the bundle into chat content parts, keeping its order."""
    parts: List[Dict[str, Any]] = []
    for entry in bundle.entries:
        if isinstance(entry, PageEntry):
            parts.append(_text_part(entry.caption))
            parts.append(_image_part(entry.image))
        elif isinstance(entry, FrameEntry):
            parts.append(_image_part(entry.image))
        elif isinstance(entry, (DeckLabel, FrameLabel, Instructions)):
            parts.append(_text_part(entry.text))
        else:
            raise TypeError(f"Unknown evidence entry: {type(entry).__name__}")
    return parts


def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_oracle_response(raw: Optional[str]) -> List[TransitionCandidate]:
    """
    Decode and validate the oracle's JSON answer.

    A missing or empty ``transitions`` array means no slide was found. Any
    other shape raises :class:`OracleError` with the raw text attached.
    """
    if raw is None or not raw.strip():
        raise OracleError("Oracle returned an empty response", raw_response=raw)

    try:
        data = json.loads(_strip_code_fence(raw))
    except json.JSONDecodeError as e:
        raise OracleError(
            f"Oracle response is not valid JSON: {e}", raw_response=raw
        ) from e

    if not isinstance(data, dict):
        raise OracleError(
            f"Oracle response must be a JSON object, got {type(data).__name__}",
            raw_response=raw,
        )

    items = data.get("transitions")
    if items is None:
        return []

    try:
        return _CANDIDATE_LIST.validate_python(items)
    except ValidationError as e:
        raise OracleError(
            f"Oracle response violates the transition schema: {e.error_count()} error(s): {e}",
            raw_response=raw,
        ) from e


class OpenAIAlignmentOracle:
    """
    Alignment oracle backed by a vision-capable OpenAI / Azure OpenAI chat model.

    The credential and model come solely from the ``LLMConfig`` given here.
    """

    def __init__(self, llm_config: LLMConfig):
        self.llm_config = llm_config
        self.client, self.model = get_openai_client(llm_config)

    async def align(self, bundle: EvidenceBundle) -> List[TransitionCandidate]:
        content = build_message_content(bundle)
        logger.info(
            "Sending evidence to %s: images=%d, frames=%d, parts=%d",
            self.model,
            bundle.image_count,
            bundle.frame_count,
            len(content),
        )

        with trace_generation(
            "Slide Alignment",
            self.model,
            input_data={
                "images": bundle.image_count,
                "frames": bundle.frame_count,
                "deck_sizes": bundle.deck_sizes,
            },
        ) as gen:
            try:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": content}],
                    response_format={
                        "type": "json_schema",
                        "json_schema": {
                            "name": "slide_transitions",
                            "strict": True,
                            "schema": TRANSITIONS_SCHEMA,
                        },
                    },
                )
            except openai.OpenAIError as e:
                raise OracleError(f"Oracle request failed: {e}") from e

            if not response.choices:
                raise OracleError("Oracle returned no choices")
            message = response.choices[0].message
            if getattr(message, "refusal", None):
                raise OracleError(
                    f"Oracle refused the request: {message.refusal}",
                    raw_response=message.refusal,
                )

            raw = message.content
            usage = None
            if response.usage:
                usage = {
                    "input": response.usage.prompt_tokens,
                    "output": response.usage.completion_tokens,
                }
            gen.end(output=raw, usage=usage)

        candidates = parse_oracle_response(raw)
        logger.info("Oracle responded with %d candidate transition(s)", len(candidates))
        return candidates

    async def aclose(self) -> None:
        await self.client.close()
