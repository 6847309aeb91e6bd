import threading
from types import SimpleNamespace

import httpx
import openai
import pytest

from conftest import BlockingCompletions, make_image, stub_response
from errors import DecodeError, EmptyResponseError, TransportError
from graph import ScanPipeline
from models import RawImage
from ocr import ExtractionClient


def test_scan_adds_extracted_contacts(book, make_client):
    client, stub = make_client(stub_response([{"name": "Jane Doe", "email": "jane@x.com"}]))
    pipeline = ScanPipeline(client, book)

    added = pipeline.run([RawImage(make_image(2400, 1200), "image/png")])

    assert len(added) == 1
    contact = added[0]
    assert (contact.name, contact.email, contact.is_edited) == ("Jane Doe", "jane@x.com", False)
    assert contact.title == contact.company == contact.notes == ""
    assert book.contacts == added
    assert len(stub.calls) == 1
    assert not pipeline.busy


def test_second_scan_appends(book, make_client):
    client, _ = make_client(stub_response([{"name": "A"}, {"name": "B"}]))
    pipeline = ScanPipeline(client, book)
    first = pipeline.run([RawImage(make_image(100, 60))])
    second = pipeline.run([RawImage(make_image(100, 60))])
    assert book.contacts == first + second
    assert len({c.id for c in book}) == 4


def test_empty_response_leaves_collection_unchanged(book, make_client):
    book.ingest([{"name": "Existing"}])
    before = book.contacts
    client, _ = make_client("")
    pipeline = ScanPipeline(client, book)

    with pytest.raises(EmptyResponseError):
        pipeline.run([RawImage(make_image(100, 60))])
    assert book.contacts == before
    assert not pipeline.busy


def test_bad_image_discards_batch_before_network(book, make_client):
    client, stub = make_client(stub_response([{"name": "x"}]))
    pipeline = ScanPipeline(client, book)
    with pytest.raises(DecodeError):
        pipeline.run([RawImage(make_image(100, 60)), RawImage(b"nope", "image/jpeg")])
    assert stub.calls == []
    assert len(book) == 0


def test_transport_failure_keeps_existing_contacts(book, make_client):
    book.ingest([{"name": "Existing"}])
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://example.invalid"))
    client, _ = make_client(error=error)
    with pytest.raises(TransportError):
        ScanPipeline(client, book).run([RawImage(make_image(100, 60))])
    assert [c.name for c in book] == ["Existing"]


def test_second_scan_waits_for_the_first(book):
    completions = BlockingCompletions(stub_response([{"name": "A"}]))
    stub = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    pipeline = ScanPipeline(ExtractionClient("sk-test", client=stub), book)
    images = [RawImage(make_image(100, 60))]

    first = threading.Thread(target=pipeline.run, args=(images,))
    first.start()
    assert completions.entered.wait(timeout=5)
    assert pipeline.busy

    second = threading.Thread(target=pipeline.run, args=(images,))
    second.start()
    second.join(timeout=0.3)
    assert second.is_alive()
    assert len(completions.calls) == 1

    completions.release.set()
    first.join(timeout=5)
    second.join(timeout=5)
    assert len(completions.calls) == 2
    assert [c.name for c in book] == ["A", "A"]
    assert not pipeline.busy


def test_empty_batch_is_a_noop(book, make_client):
    client, stub = make_client(stub_response([{"name": "x"}]))
    assert ScanPipeline(client, book).run([]) == []
    assert stub.calls == []
    assert len(book) == 0
