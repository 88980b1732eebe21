"""Shared fixtures: a scripted stand-in for the Anthropic client."""

import asyncio
import json

import pytest

from cueguard.llm.client import LLMResponse
from cueguard.llm.prompts import CLASSIFIER_SYSTEM_PROMPT


class FakeLLMClient:
    """Answers classifier and bot prompts from scripted replies.

    Each script is a list consumed in order (the last entry repeats).  An
    entry may be a JSON string, a dict (dumped to JSON) or an exception
    instance, which is raised instead of answering.
    """

    def __init__(self, classify=None, reply=None, configured=True, delay=0.0):
        self.model = "fake-model"
        self._configured = configured
        self._scripts = {
            "classify": list(classify or []),
            "reply": list(reply or []),
        }
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    @property
    def configured(self) -> bool:
        return self._configured

    async def complete(self, prompt, system_prompt=None, max_tokens=1024, temperature=0.3):
        kind = "classify" if system_prompt == CLASSIFIER_SYSTEM_PROMPT else "reply"
        self.calls.append((kind, prompt))
        if self.delay:
            await asyncio.sleep(self.delay)

        script = self._scripts[kind]
        if not script:
            raise RuntimeError(f"no scripted {kind} response")
        entry = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, dict):
            entry = json.dumps(entry)
        return LLMResponse(content=entry, model=self.model)

    def count(self, kind: str) -> int:
        return sum(1 for k, _ in self.calls if k == kind)


@pytest.fixture
def fake_client():
    """Factory for :class:`FakeLLMClient` instances."""
    return FakeLLMClient


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
