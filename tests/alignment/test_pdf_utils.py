# pylint: disable=redefined-outer-name,unused-argument
import asyncio
import threading
import time

import cv2
import fitz
import numpy as np
import pytest

from decksync.alignment.errors import ExtractionError
from decksync.alignment.pdf_utils import rasterize_deck


def _decode(image: bytes):
    return cv2.imdecode(np.frombuffer(image, np.uint8), cv2.IMREAD_COLOR)


@pytest.mark.anyio
async def test_rasterize_deck_yields_one_page_per_pdf_page(make_pdf):
    path = make_pdf("intro.pdf", ["Welcome", "Agenda", "Results", "Questions"])

    deck = await rasterize_deck(path, deck_id=1)

    assert deck.deck_id == 1
    assert deck.source == "intro.pdf"
    assert len(deck) == 4
    assert [p.index for p in deck.pages] == [1, 2, 3, 4]
    assert all(p.image.startswith(b"\xff\xd8") for p in deck.pages)


@pytest.mark.anyio
async def test_render_scale_controls_resolution(make_pdf):
    path = make_pdf("deck.pdf", ["Only slide"], width=320, height=180)

    native = await rasterize_deck(path, deck_id=1, render_scale=1.0)
    doubled = await rasterize_deck(path, deck_id=1, render_scale=2.0)

    assert _decode(native.pages[0].image).shape[:2] == (180, 320)
    assert _decode(doubled.pages[0].image).shape[:2] == (360, 640)


@pytest.mark.anyio
async def test_missing_document_raises(tmp_path):
    with pytest.raises(ExtractionError) as exc_info:
        await rasterize_deck(str(tmp_path / "nope.pdf"), deck_id=2)

    assert exc_info.value.source == "nope.pdf"
    assert exc_info.value.page is None


@pytest.mark.anyio
async def test_corrupt_document_raises(tmp_path):
    path = tmp_path / "corrupt.pdf"
    path.write_bytes(b"this is not a pdf")

    with pytest.raises(ExtractionError, match="corrupt.pdf"):
        await rasterize_deck(str(path), deck_id=1)


@pytest.mark.anyio
async def test_page_failure_aborts_whole_deck(make_pdf, monkeypatch):
    path = make_pdf("deck.pdf", ["One", "Two", "Three"])
    original = fitz.Page.get_pixmap

    def flaky_get_pixmap(self, *args, **kwargs):
        if self.number == 1:
            raise RuntimeError("render failed")
        return original(self, *args, **kwargs)

    monkeypatch.setattr(fitz.Page, "get_pixmap", flaky_get_pixmap)

    with pytest.raises(ExtractionError) as exc_info:
        await rasterize_deck(path, deck_id=1)

    assert exc_info.value.page == 2
    assert "page 2" in str(exc_info.value)


@pytest.mark.anyio
async def test_cancel_during_render_keeps_event_loop_free(make_pdf, monkeypatch):
    path = make_pdf("deck.pdf", ["One", "Two"])
    original = fitz.Page.get_pixmap
    entered = threading.Event()
    gate = threading.Event()
    # Let a stuck render finish eventually even if the loop blocks
    safety = threading.Timer(2.0, gate.set)
    safety.start()

    def slow_get_pixmap(self, *args, **kwargs):
        entered.set()
        gate.wait()
        return original(self, *args, **kwargs)

    monkeypatch.setattr(fitz.Page, "get_pixmap", slow_get_pixmap)

    task = asyncio.create_task(rasterize_deck(path, deck_id=1))
    await asyncio.to_thread(entered.wait, 5)
    task.cancel()

    started = time.monotonic()
    await asyncio.sleep(0.05)
    loop_delay = time.monotonic() - started
    assert not task.done()

    gate.set()
    safety.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert loop_delay < 1.0
