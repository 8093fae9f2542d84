import asyncio
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from contract_compliance.assistant import BRIEF_SYSTEM, CLASSIFY_SYSTEM, EXTRACT_SYSTEM
from contract_compliance.rules import RuleCorpus


class ScriptedLLM:
    """Fake text generator that answers by prompt kind.

    A reply may be a dict (sent as JSON), a string, or an exception to raise.
    """

    def __init__(self, classify=None, extract=None, brief="Negotiation brief.",
                 email="Dear client,", delay=0.0, healthy=True):
        self.replies = {
            "classify": classify,
            "extract": extract if extract is not None else {},
            "brief": brief,
            "email": email,
        }
        self.delay = delay
        self.healthy = healthy
        self.calls = []

    @property
    def kinds(self):
        return [kind for kind, _ in self.calls]

    def prompt(self, kind):
        return next(p for k, p in self.calls if k == kind)

    async def generate(self, system_prompt, prompt):
        if system_prompt == CLASSIFY_SYSTEM:
            kind = "classify"
        elif system_prompt in EXTRACT_SYSTEM.values():
            kind = "extract"
        elif system_prompt == BRIEF_SYSTEM:
            kind = "brief"
        else:
            kind = "email"
        self.calls.append((kind, prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies[kind]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply

    def check_health(self):
        return self.healthy


def classified(doc_type, confidence=0.95, reasoning="clear markers"):
    return {"documentType": doc_type, "confidence": confidence, "reasoning": reasoning}


@pytest.fixture
def corpus():
    return RuleCorpus.default()


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture
def classification_reply():
    return classified
