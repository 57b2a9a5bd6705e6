"""Tests for the Gemini REST gateway."""

import json

import httpx
import pytest

from sahayak.errors import MalformedResponse, NetworkError, PermissionDenied, ServiceError, Timeout
from sahayak.gateways import create_gateway
from sahayak.gateways.gemini_gateway import GeminiGateway
from sahayak.languages import Language
from sahayak.models import EncodedClip, SchemeCandidate


def _reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class Recorder:
    """httpx.MockTransport handler that answers every request the same way."""

    def __init__(self, status=200, body=None, exc=None):
        self.status = status
        self.body = body if body is not None else _reply("ok")
        self.exc = exc
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if isinstance(self.body, str):
            return httpx.Response(self.status, text=self.body)
        return httpx.Response(self.status, json=self.body)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


def _gateway(recorder, api_key="test-key"):
    return GeminiGateway(
        api_key=api_key,
        model="chat-model",
        fast_model="fast-model",
        base_url="https://gemini.test",
        timeout=5,
        transport=httpx.MockTransport(recorder),
    )


@pytest.mark.asyncio
async def test_send_one_shot_posts_prompt_and_instruction():
    recorder = Recorder(body=_reply("  Namaste!  "))

    text = await _gateway(recorder).send_one_shot(prompt="hello", language=Language.HINDI, context={"schemes": 3})

    assert text == "Namaste!"
    request = recorder.requests[0]
    assert request.url.path == "/v1beta/models/chat-model:generateContent"
    assert request.headers["x-goog-api-key"] == "test-key"
    body = recorder.last_json
    assert body["contents"][0]["parts"] == [{"text": "User Input: hello"}]
    instruction = body["systemInstruction"]["parts"][0]["text"]
    assert "हिन्दी (Hindi)" in instruction
    assert '"schemes": 3' in instruction


@pytest.mark.asyncio
async def test_send_one_shot_inlines_audio():
    recorder = Recorder()
    clip = EncodedClip(data=b"RIFF0000", mime_type="audio/wav")

    await _gateway(recorder).send_one_shot(audio=clip)

    parts = recorder.last_json["contents"][0]["parts"]
    assert parts[0] == {"inlineData": {"mimeType": "audio/wav", "data": clip.to_base64()}}
    assert parts[1]["text"].startswith("User Input: The user sent a voice message")


@pytest.mark.asyncio
async def test_missing_key_fails_without_a_request():
    recorder = Recorder()

    with pytest.raises(ServiceError, match="GEMINI_API_KEY"):
        await _gateway(recorder, api_key="").send_one_shot(prompt="hello")

    assert recorder.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,error",
    [(401, PermissionDenied), (403, PermissionDenied), (504, Timeout), (500, ServiceError), (429, ServiceError)],
)
async def test_http_errors_are_mapped(status, error):
    recorder = Recorder(status=status, body={"error": {"message": "nope"}})

    with pytest.raises(error):
        await _gateway(recorder).send_one_shot(prompt="hello")


@pytest.mark.asyncio
async def test_transport_errors_are_mapped():
    with pytest.raises(Timeout):
        await _gateway(Recorder(exc=httpx.ReadTimeout("slow"))).send_one_shot(prompt="hello")

    with pytest.raises(NetworkError):
        await _gateway(Recorder(exc=httpx.ConnectError("offline"))).send_one_shot(prompt="hello")

    with pytest.raises(NetworkError):
        await _gateway(Recorder(exc=httpx.DecodingError("bad gzip"))).send_one_shot(prompt="hello")

    with pytest.raises(NetworkError):
        await _gateway(Recorder(exc=httpx.TooManyRedirects("loop"))).send_one_shot(prompt="hello")


@pytest.mark.asyncio
async def test_non_json_body_is_malformed():
    with pytest.raises(MalformedResponse):
        await _gateway(Recorder(body="<html>")).send_one_shot(prompt="hello")


@pytest.mark.asyncio
async def test_blocked_prompt_is_a_service_error():
    recorder = Recorder(body={"candidates": [], "promptFeedback": {"blockReason": "SAFETY"}})

    with pytest.raises(ServiceError, match="SAFETY"):
        await _gateway(recorder).send_one_shot(prompt="hello")


@pytest.mark.asyncio
async def test_semantic_search_returns_known_ids():
    recorder = Recorder(body=_reply('["s2", "bogus", "s1"]'))
    candidates = [SchemeCandidate("s1", "PM-KISAN"), SchemeCandidate("s2", "Ayushman Bharat")]

    ids = await _gateway(recorder).semantic_search("health insurance", candidates)

    assert ids == ["s2", "s1"]
    body = recorder.last_json
    assert recorder.requests[0].url.path == "/v1beta/models/fast-model:generateContent"
    assert body["generationConfig"]["responseMimeType"] == "application/json"


@pytest.mark.asyncio
async def test_semantic_search_skips_empty_query():
    recorder = Recorder()

    assert await _gateway(recorder).semantic_search("  ", [SchemeCandidate("s1", "PM-KISAN")]) == []
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_semantic_search_rejects_unparseable_answer():
    recorder = Recorder(body=_reply("I could not decide"))

    with pytest.raises(MalformedResponse):
        await _gateway(recorder).semantic_search("pension", [SchemeCandidate("s1", "Old Age Pension")])


@pytest.mark.asyncio
async def test_check_document_eligibility():
    answer = json.dumps({
        "isEligible": False,
        "confidenceScore": 72,
        "detectedDocumentType": "Aadhaar Card",
        "observation": "Income not shown",
        "missingInformation": ["Income"],
    })
    recorder = Recorder(body=_reply(answer))
    image = EncodedClip(data=b"\xff\xd8jpeg", mime_type="image/jpeg")

    verdict = await _gateway(recorder).check_document_eligibility(image, "PM-KISAN", ["Farmer", "Income < 2L"])

    assert verdict.is_eligible is False
    assert verdict.confidence_score == 72.0
    assert verdict.missing_information == ["Income"]
    parts = recorder.last_json["contents"][0]["parts"]
    assert parts[0]["inlineData"]["mimeType"] == "image/jpeg"
    assert "Farmer, Income < 2L" in parts[1]["text"]


@pytest.mark.asyncio
async def test_suggest_schemes_and_translate():
    suggestions = await _gateway(
        Recorder(body=_reply('[{"schemeName": "PM-KISAN", "reason": "Farmer"}]'))
    ).suggest_schemes("small farmer in Bihar")
    assert suggestions[0].scheme_name == "PM-KISAN"

    recorder = Recorder(body=_reply(" नमस्ते \n"))
    assert await _gateway(recorder).translate("Hello", Language.HINDI) == "नमस्ते"
    assert "हिन्दी (Hindi)" in recorder.last_json["contents"][0]["parts"][0]["text"]


def test_create_gateway():
    assert isinstance(create_gateway("Gemini"), GeminiGateway)

    with pytest.raises(ValueError):
        create_gateway("ollama")
