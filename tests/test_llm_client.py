import json

import httpx
import pytest

from pdf_qa_server.core.errors import (
    GenerationFormatError,
    RateLimitError,
    TransientServiceError,
    UpstreamServiceError,
)
from pdf_qa_server.llm.client import GenerationClient


def make_client(handler):
    requests = []

    def _recording_handler(request):
        requests.append(request)
        return handler(request)

    client = GenerationClient(
        api_key="test-key",
        model="gemini-test",
        base_url="https://gemini.test/v1beta/",
        temperature=0.1,
        transport=httpx.MockTransport(_recording_handler),
    )
    return client, requests


def _candidate(*texts):
    return {"candidates": [{"content": {"parts": [{"text": t} for t in texts]}}]}


@pytest.mark.asyncio
async def test_generate_joins_candidate_parts():
    client, requests = make_client(lambda request: httpx.Response(200, json=_candidate("Hello", " there")))

    assert await client.generate("prompt text") == "Hello there"

    request = requests[0]
    assert str(request.url) == "https://gemini.test/v1beta/models/gemini-test:generateContent"
    assert request.headers["x-goog-api-key"] == "test-key"
    body = json.loads(request.content)
    assert body["contents"][0]["parts"][0]["text"] == "prompt text"
    assert body["generationConfig"]["temperature"] == 0.1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, error_type",
    [
        (429, RateLimitError),
        (503, TransientServiceError),
        (500, UpstreamServiceError),
        (403, UpstreamServiceError),
    ],
)
async def test_http_errors_mapped(status, error_type):
    client, requests = make_client(lambda request: httpx.Response(status))

    with pytest.raises(error_type):
        await client.generate("prompt")

    # The client itself never retries
    assert len(requests) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {},
        {"candidates": []},
        {"candidates": ["oops"]},
        {"candidates": [{"content": None}]},
        {"candidates": [{"content": {"parts": [{"inline": "x"}]}}]},
    ],
)
async def test_missing_text_rejected(body):
    client, _ = make_client(lambda request: httpx.Response(200, json=body))

    with pytest.raises(GenerationFormatError):
        await client.generate("prompt")


@pytest.mark.asyncio
async def test_non_json_body_rejected():
    client, _ = make_client(lambda request: httpx.Response(200, content=b"<html>"))

    with pytest.raises(GenerationFormatError):
        await client.generate("prompt")
