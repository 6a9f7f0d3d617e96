import asyncio
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = str(ROOT / "src")

if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)

from prompt_judge.config import build_config  # noqa: E402


class FakeRateLimitError(Exception):
    status_code = 429


class ScriptedCompletionClient:
    """
    Stands in for ChatModelClient. Each call consumes the next script entry;
    exceptions in the script are raised, anything else is returned as text.
    Once the script runs out, `default` is used.
    """

    def __init__(self, script=None, default=None, latency_seconds=0.0):
        self.script = list(script or [])
        self.default = default
        self.latency_seconds = latency_seconds
        self.calls = []

    async def complete(self, *, model, system_prompt, user_prompt, temperature=0.7, response_format=None):
        self.calls.append(
            {
                "model": model,
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "response_format": response_format,
            }
        )
        entry = self.script.pop(0) if self.script else self.default
        await asyncio.sleep(self.latency_seconds)
        if isinstance(entry, BaseException):
            raise entry
        return entry


def build_payload(
    overall_score=80,
    filler_percentage=2.5,
    weak_percentage=1.0,
    variety_score=70.0,
):
    return {
        "qualitative": {"strengths": ["Clear opener"], "areasForImprovement": [], "overallFeedback": "Solid call."},
        "quantitative": {
            "communicationScore": 82,
            "communicationJustification": "Explained the offer plainly.",
            "persuasivenessScore": 75,
            "persuasivenessJustification": "Quoted a 30% reduction.",
            "professionalismScore": 90,
            "professionalismJustification": "Polite intro and outro.",
            "callObjectiveScore": 100,
            "callObjectiveJustification": "Prospect agreed to Friday.",
            "languageQualityScore": 70,
            "languageQualityJustification": "Some filler words.",
            "overallScore": overall_score,
        },
        "languageAnalysis": {
            "fillerWords": {"count": 2, "instances": ["so", "like"], "percentage": filler_percentage, "citation": ["L4"]},
            "weakWords": {"count": 1, "instances": ["just"], "percentage": weak_percentage, "citation": ["L9"]},
            "sentenceStarters": {
                "mostUsed": ["Our"],
                "repetitionCount": 2,
                "varietyScore": variety_score,
                "citation": [],
            },
        },
        "recommendations": ["Ask for the meeting earlier."],
    }


@pytest.fixture
def judge_config():
    return build_config()


@pytest.fixture
def payload_factory():
    return build_payload


@pytest.fixture
def scripted_client():
    return ScriptedCompletionClient


@pytest.fixture
def rate_limit_error():
    return FakeRateLimitError


@pytest.fixture
def recorded_sleep():
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    return fake_sleep, delays
