import io
import json
import threading
from types import SimpleNamespace

import pytest
from PIL import Image

from contacts import ContactBook
from ocr import ExtractionClient


def make_image(width, height, fmt="PNG", mode="RGB"):
    buf = io.BytesIO()
    Image.new(mode, (width, height), "white").save(buf, format=fmt)
    return buf.getvalue()


class StubCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content, refusal=None)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class BlockingCompletions(StubCompletions):
    """create() が呼ばれたら release がセットされるまで待つ"""

    def __init__(self, content=None):
        super().__init__(content)
        self.entered = threading.Event()
        self.release = threading.Event()

    def create(self, **kwargs):
        self.calls.append(kwargs)
        self.entered.set()
        self.release.wait(timeout=5)
        message = SimpleNamespace(content=self.content, refusal=None)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class StubOpenAI:
    def __init__(self, content=None, error=None):
        self.completions = StubCompletions(content, error)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self):
        return self.completions.calls


def stub_response(contacts):
    return json.dumps({"contacts": contacts})


@pytest.fixture
def book():
    return ContactBook()


@pytest.fixture
def make_client():
    def _make(content=None, error=None, api_key="sk-test"):
        stub = StubOpenAI(content, error)
        return ExtractionClient(api_key, model="gpt-4o-mini", client=stub), stub
    return _make
