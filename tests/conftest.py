"""Pytest configuration and shared fixtures."""

import asyncio
import base64
import json
from io import BytesIO
from typing import Callable, Dict, List, Optional, Union

import httpx
import pytest
from PIL import Image

from photo_stylizer.core import load_styles
from photo_stylizer.models.schemas import GenerationResult, GenerationSuccess
from photo_stylizer.providers import GeminiClient
from photo_stylizer.utils.config import load_config

TEST_API_KEY = "test-key-123"
GENERATED_B64 = base64.b64encode(b"generated-image-bytes").decode("utf-8")


def make_jpeg(width: int = 64, height: int = 48, color=(200, 40, 40)) -> bytes:
    image = Image.new("RGB", (width, height), color)
    buffer = BytesIO()
    image.save(buffer, format="JPEG")
    return buffer.getvalue()


def gemini_image_response(data: str = GENERATED_B64, with_text: bool = True) -> dict:
    """Body shaped like a generateContent answer carrying an inline image."""
    parts = []
    if with_text:
        parts.append({"text": "Here is your stylized portrait."})
    parts.append({"inlineData": {"mimeType": "image/png", "data": data}})
    return {"candidates": [{"content": {"parts": parts, "role": "model"}, "finishReason": "STOP"}]}


def gemini_text_response(text: str = "I can't edit this image.") -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


class RecordingHandler:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, responses: Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]):
        self.responses = responses
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if callable(self.responses):
            return self.responses(request)
        return self.responses

    @property
    def calls(self) -> int:
        return len(self.requests)

    def json_body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


class FakeBackend:
    """
    Scripted generation backend.

    `outcomes` maps a prompt to a GenerationResult or an exception; prompts
    not listed succeed. `gate` lets a test hold calls open until released.
    """

    name = "fake"

    def __init__(
        self,
        outcomes: Optional[Dict[str, Union[GenerationResult, Exception]]] = None,
        delay: float = 0.0,
        gate: Optional[asyncio.Event] = None,
    ):
        self.outcomes = outcomes or {}
        self.delay = delay
        self.gate = gate
        self.calls: List[str] = []
        self.started = asyncio.Event()

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def generate(self, image_data: str, prompt: str) -> GenerationResult:
        self.calls.append(prompt)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)

        outcome = self.outcomes.get(prompt)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is not None:
            return outcome
        return GenerationSuccess(
            image_url=f"data:image/jpeg;base64,{GENERATED_B64}",
            prompt=prompt,
        )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep developer credentials and state out of the tests."""
    for name in ("GEMINI_API_KEY", "PROXY_URL", "STYLES_PATH", "GEMINI_BASE_URL", "GEMINI_MODEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ONBOARDING_STATE_PATH", str(tmp_path / "onboarding.json"))


@pytest.fixture
def config():
    """Configuration with a fast progress heartbeat."""
    return load_config(
        PROGRESS_INTERVAL_SECONDS="0.01",
        PROGRESS_SETTLE_SECONDS="0.05",
        REQUEST_TIMEOUT_SECONDS="5",
    )


@pytest.fixture
def catalog():
    return load_styles()


@pytest.fixture
def photo_bytes() -> bytes:
    return make_jpeg()


@pytest.fixture
def sample_photo(photo_bytes) -> str:
    """Data URL of a small JPEG."""
    return "data:image/jpeg;base64," + base64.b64encode(photo_bytes).decode("utf-8")


@pytest.fixture
def sample_prompt() -> str:
    return "Turn this person into a watercolor painting"


@pytest.fixture
def gemini_factory():
    """Build GeminiClients bound to a recording mock transport (not yet initialized)."""

    def factory(responses, **kwargs) -> tuple:
        handler = RecordingHandler(responses)
        client = GeminiClient(
            api_key=TEST_API_KEY,
            transport=httpx.MockTransport(handler),
            **kwargs,
        )
        return client, handler

    return factory
