import asyncio

import pytest
from fastapi.testclient import TestClient

from api.server import create_app
from floorplan.analyzer import AnalysisOutcome
from floorplan.config import Settings
from floorplan.errors import SpeechSynthesisError, TruncatedResponse
from floorplan.schemas import FloorPlanAnalysis


class StubAnalyzer:
    def __init__(self, outcome, delay=0.0):
        self.outcome = outcome
        self.delay = delay
        self.calls = 0

    async def analyze_with_status(self, data, content_type):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.outcome


class StubChat:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def reply(self, message, context):
        self.calls.append((message, context))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class StubSpeech:
    def __init__(self, result):
        self.result = result

    async def synthesize(self, text):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def client_for(env="development", timeout_ms=30_000, **services):
    settings = Settings(ENV=env, REQUEST_TIMEOUT_MS=timeout_ms)
    return TestClient(create_app(settings, **services))


@pytest.fixture
def analyzer(analysis):
    return StubAnalyzer(AnalysisOutcome(analysis))


def test_health():
    resp = client_for().get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_analyze_returns_parsed_analysis(analyzer, analysis):
    client = client_for(analyzer=analyzer)
    resp = client.post("/api/analyze", files={"file": ("plan.png", b"\x89PNG....", "image/png")})
    assert resp.status_code == 200
    assert FloorPlanAnalysis.model_validate(resp.json()["parsedAnalysis"]) == analysis


def test_analyze_requires_multipart(analyzer):
    resp = client_for(analyzer=analyzer).post("/api/analyze", json={"file": "x"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Content type must be multipart/form-data"}


def test_analyze_requires_file(analyzer):
    resp = client_for(analyzer=analyzer).post(
        "/api/analyze", files={"image": ("plan.png", b"\x89PNG", "image/png")}
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "No file uploaded"


def test_analyze_malformed_multipart_uses_error_envelope(analyzer):
    resp = client_for(analyzer=analyzer).post(
        "/api/analyze",
        content=b"garbage",
        headers={"content-type": "multipart/form-data"},
    )
    assert resp.status_code == 400
    assert set(resp.json()) == {"error"}
    assert analyzer.calls == 0


def test_unknown_route_and_method_use_error_envelope():
    client = client_for()
    missing = client.get("/api/nope")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Not Found"}
    wrong_method = client.get("/api/chat")
    assert wrong_method.status_code == 405
    assert wrong_method.json() == {"error": "Method Not Allowed"}


def test_analyze_rejects_gif(analyzer):
    resp = client_for(analyzer=analyzer).post(
        "/api/analyze", files={"file": ("a.gif", b"GIF89a", "image/gif")}
    )
    assert resp.status_code == 415
    assert "image/gif" in resp.json()["error"]
    assert analyzer.calls == 0


def test_analyze_rejects_oversized(analyzer):
    big = b"\xff" * (6 * 1024 * 1024)
    resp = client_for(analyzer=analyzer).post(
        "/api/analyze", files={"file": ("big.jpg", big, "image/jpeg")}
    )
    assert resp.status_code == 413
    assert analyzer.calls == 0


def test_degraded_analysis_still_returns_sentinel():
    stub = StubAnalyzer(AnalysisOutcome(FloorPlanAnalysis.sentinel(), degraded=True))
    resp = client_for(analyzer=stub).post(
        "/api/analyze", files={"file": ("plan.webp", b"RIFF", "image/webp")}
    )
    assert resp.status_code == 200
    assert FloorPlanAnalysis.model_validate(resp.json()["parsedAnalysis"]).is_sentinel()


@pytest.mark.parametrize(
    "env,message",
    [
        ("development", "Analysis timeout"),
        ("production", "An error occurred while processing your request"),
    ],
)
def test_analysis_timeout_maps_to_504(analysis, env, message):
    stub = StubAnalyzer(AnalysisOutcome(analysis), delay=1.0)
    client = client_for(env=env, timeout_ms=20, analyzer=stub)
    resp = client.post("/api/analyze", files={"file": ("plan.png", b"\x89PNG", "image/png")})
    assert resp.status_code == 504
    assert resp.json() == {"error": message}


def test_chat_returns_text(analysis):
    chat = StubChat("Add lighting to the kitchen first.")
    body = {
        "message": "what about the kitchen?",
        "context": {
            "analysis": analysis.model_dump(mode="json"),
            "previousMessages": [
                {"id": "1", "text": "hi", "sender": "user", "timestamp": 1},
            ],
        },
    }
    resp = client_for(chat_service=chat).post("/api/chat", json=body)
    assert resp.status_code == 200
    assert resp.json() == {"text": "Add lighting to the kitchen first."}
    message, context = chat.calls[0]
    assert message == "what about the kitchen?"
    assert context.analysis == analysis
    assert context.previous_messages[0].text == "hi"


def test_chat_requires_message_and_context(analysis):
    client = client_for(chat_service=StubChat("unused"))
    resp = client.post("/api/chat", json={"context": {"analysis": analysis.model_dump()}})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Message is required"
    resp = client.post("/api/chat", json={"message": "hello"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Context is required"


def test_chat_rejects_malformed_context():
    bad = {"scores": {"lighting": 500, "space": 1, "flow": 1, "accessibility": 1}, "recommendations": []}
    resp = client_for(chat_service=StubChat("unused")).post(
        "/api/chat", json={"message": "hi", "context": {"analysis": bad}}
    )
    assert resp.status_code == 400


def test_chat_provider_failure_is_generic_500(analysis):
    client = client_for(chat_service=StubChat(TruncatedResponse("The response is too long")))
    resp = client.post(
        "/api/chat",
        json={"message": "hi", "context": {"analysis": analysis.model_dump(), "previousMessages": []}},
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to process chat message."}


def test_tts_returns_wav():
    audio = b"RIFF" + b"\x00" * 60
    resp = client_for(speech_service=StubSpeech(audio)).post("/api/tts", json={"text": "hello"})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "audio/wav"
    assert resp.headers["content-length"] == str(len(audio))
    assert resp.content == audio


def test_tts_failure_is_500():
    resp = client_for(speech_service=StubSpeech(SpeechSynthesisError("boom"))).post(
        "/api/tts", json={"text": "hello"}
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to generate speech"}
