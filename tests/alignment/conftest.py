# pylint: disable=redefined-outer-name
from typing import List

import cv2
import fitz
import pytest

from alignment_helpers import FakeCapture


@pytest.fixture
def fake_video(monkeypatch):
    """Install a FakeCapture for the next cv2.VideoCapture(...) call and return it."""

    def install(**kwargs) -> FakeCapture:
        capture = FakeCapture(**kwargs)
        monkeypatch.setattr(cv2, "VideoCapture", lambda path: capture)
        return capture

    return install


@pytest.fixture
def make_pdf(tmp_path):
    """Write a PDF with one titled page per entry and return its path."""

    def build(name: str, titles: List[str], width: int = 320, height: int = 180) -> str:
        path = tmp_path / name
        doc = fitz.open()
        for title in titles:
            page = doc.new_page(width=width, height=height)
            page.insert_text((20, 40), title, fontsize=18)
        doc.save(str(path))
        doc.close()
        return str(path)

    return build
