# pylint: disable=protected-access
import base64
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from decksync.alignment.dto import Deck, FrameSample, Page
from decksync.alignment.errors import OracleError
from decksync.alignment.evidence import assemble_evidence
from decksync.alignment.oracle import (
    OpenAIAlignmentOracle,
    build_message_content,
    parse_oracle_response,
)
from decksync.llm.llm_config import LLMConfig

VALID = {
    "transitions": [
        {
            "timestamp": "00:12",
            "deckId": 1,
            "pageIndex": 2,
            "title": "Agenda",
            "reasoning": "Title matches Deck 1 Page 2",
            "confidence": "High",
        }
    ]
}


def _bundle():
    deck1 = Deck(1, "a.pdf", (Page(1, b"p11"), Page(2, b"p12")))
    deck2 = Deck(2, "b.pdf", (Page(1, b"p21"),))
    frames = [FrameSample(0.0, b"f0"), FrameSample(5.0, b"f5")]
    return assemble_evidence(deck1, deck2, frames)


def _oracle_with_response(content):
    oracle = OpenAIAlignmentOracle(
        LLMConfig(id="test", type="openai_chat", model="gpt-test", api_key="sk-test")
    )
    response = MagicMock()
    response.choices[0].message.content = content
    response.choices[0].message.refusal = None
    response.usage.prompt_tokens = 100
    response.usage.completion_tokens = 20
    create = AsyncMock(return_value=response)
    oracle.client = MagicMock(
        chat=MagicMock(completions=MagicMock(create=create)), close=AsyncMock()
    )
    return oracle, create


def test_parse_valid_response():
    candidates = parse_oracle_response(json.dumps(VALID))
    assert len(candidates) == 1
    assert candidates[0].deckId == 1
    assert candidates[0].pageIndex == 2
    assert candidates[0].confidence == "High"


def test_parse_tolerates_code_fence():
    raw = "```json\n" + json.dumps(VALID) + "\n```"
    assert len(parse_oracle_response(raw)) == 1


@pytest.mark.parametrize("raw", ['{"transitions": []}', "{}"])
def test_parse_no_transitions(raw):
    assert parse_oracle_response(raw) == []


@pytest.mark.parametrize("raw", ["", "not json", "[1, 2]", '"text"'])
def test_parse_rejects_non_objects(raw):
    with pytest.raises(OracleError) as exc_info:
        parse_oracle_response(raw)
    assert exc_info.value.raw_response == raw


@pytest.mark.parametrize(
    "change",
    [
        {"confidence": "Certain"},
        {"deckId": "first"},
        {"extra": "field"},
    ],
)
def test_parse_rejects_schema_violations(change):
    item = {**VALID["transitions"][0], **change}
    raw = json.dumps({"transitions": [item]})
    with pytest.raises(OracleError) as exc_info:
        parse_oracle_response(raw)
    assert exc_info.value.raw_response == raw


def test_parse_rejects_missing_field():
    item = dict(VALID["transitions"][0])
    del item["title"]
    with pytest.raises(OracleError):
        parse_oracle_response(json.dumps({"transitions": [item]}))


def test_message_content_keeps_bundle_order():
    parts = build_message_content(_bundle())

    images = [p for p in parts if p["type"] == "image_url"]
    assert len(images) == 5
    decoded = [
        base64.b64decode(p["image_url"]["url"].split(",", 1)[1]) for p in images
    ]
    assert decoded == [b"p11", b"p12", b"p21", b"f0", b"f5"]

    texts = [p["text"] for p in parts if p["type"] == "text"]
    assert texts.index("Deck 1 Page 1") < texts.index("Deck 2 Page 1")
    assert texts.index("[VIDEO_TIMESTAMP: 00:00]") < texts.index(
        "[VIDEO_TIMESTAMP: 00:05]"
    )
    assert parts[-1]["type"] == "text"
    assert "transitions" in parts[-1]["text"]

    caption_idx = parts.index({"type": "text", "text": "Deck 1 Page 2"})
    assert parts[caption_idx + 1]["type"] == "image_url"


@pytest.mark.anyio
async def test_align_requests_strict_schema():
    oracle, create = _oracle_with_response(json.dumps(VALID))

    candidates = await oracle.align(_bundle())

    assert [c.timestamp for c in candidates] == ["00:12"]
    kwargs = create.call_args.kwargs
    assert kwargs["model"] == "gpt-test"
    schema = kwargs["response_format"]["json_schema"]
    assert schema["strict"] is True
    item_schema = schema["schema"]["properties"]["transitions"]["items"]
    assert set(item_schema["required"]) == {
        "timestamp",
        "deckId",
        "pageIndex",
        "title",
        "reasoning",
        "confidence",
    }
    assert item_schema["properties"]["confidence"]["enum"] == ["High", "Medium", "Low"]


@pytest.mark.anyio
async def test_align_wraps_transport_errors():
    oracle, create = _oracle_with_response("{}")
    create.side_effect = openai.APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )

    with pytest.raises(OracleError, match="request failed"):
        await oracle.align(_bundle())
    assert create.await_count == 1


@pytest.mark.anyio
async def test_align_keeps_raw_response_on_bad_json():
    oracle, _ = _oracle_with_response("Sorry, I cannot tell.")

    with pytest.raises(OracleError) as exc_info:
        await oracle.align(_bundle())
    assert exc_info.value.raw_response == "Sorry, I cannot tell."


@pytest.mark.anyio
async def test_aclose_closes_client():
    oracle, _ = _oracle_with_response("{}")
    await oracle.aclose()
    oracle.client.close.assert_awaited_once()
