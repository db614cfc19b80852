import os
import sys
import warnings

import httpx
import openai
import pytest
from langchain_core.messages import AIMessage

# Ensure project root is on sys.path for `import floorplan`, `import api`, etc.
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Keep provider credentials out of the test run
os.environ.setdefault("OPENAI_API_KEY", "sk-fake-for-tests")
os.environ.setdefault("DEEPGRAM_API_KEY", "dg-fake-for-tests")

# Suppress LangChain deprecation warnings
warnings.filterwarnings("ignore", category=DeprecationWarning, module="langchain.*")

from floorplan.config import Settings  # noqa: E402
from floorplan.schemas import FloorPlanAnalysis  # noqa: E402


class FakeLLM:
    """Async chat model stub. Each call consumes the next outcome; the last one repeats."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def ainvoke(self, messages, **kwargs):
        self.calls.append((messages, kwargs))
        out = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(out, BaseException):
            raise out
        return out


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def reply(content, finish_reason="stop"):
    return AIMessage(content=content, response_metadata={"finish_reason": finish_reason})


def api_status_error(status):
    req = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.APIStatusError(
        f"Error code: {status}", response=httpx.Response(status, request=req), body=None
    )


@pytest.fixture
def settings():
    return Settings(
        OPENAI_API_KEY="sk-test",
        DEEPGRAM_API_KEY="dg-test",
        ENV="development",
        API_BASE_URL="http://testserver/api",
    )


@pytest.fixture
def fake_llm():
    return FakeLLM


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def llm_reply():
    return reply


@pytest.fixture
def provider_error():
    return api_status_error


@pytest.fixture
def analysis():
    return FloorPlanAnalysis.model_validate(
        {
            "scores": {"lighting": 62, "space": 75, "flow": 58, "accessibility": 40},
            "recommendations": [
                {
                    "area": "Kitchen",
                    "issue": "Single small window leaves the work area dim",
                    "suggestion": "Add lighting to kitchen: under-cabinet strips and a skylight",
                    "priority": "high",
                },
                {
                    "area": "Hallway",
                    "issue": "Corridor narrows to 80 cm near the bathroom",
                    "suggestion": "Widen to at least 90 cm for wheelchair access",
                    "priority": "medium",
                },
            ],
        }
    )
