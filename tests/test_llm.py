"""Tests for the Ollama client with a mocked requests session."""

import asyncio
import time
from unittest import mock

import pytest
import requests

from contract_compliance import LLMError, LLMUnavailableError, OllamaClient


def make_client(session, **kwargs):
    return OllamaClient(base_url="http://ollama.test:11434/", model="llama3.2", session=session, **kwargs)


def ok_response(payload):
    resp = mock.Mock()
    resp.raise_for_status.return_value = None
    resp.json.return_value = payload
    return resp


# ── Generation ───────────────────────────────────────────────────────

def test_generate_posts_payload():
    session = mock.Mock()
    session.post.return_value = ok_response({"response": "company_profile"})
    client = make_client(session, timeout=12)

    assert client.generate_sync("system text", "user prompt") == "company_profile"

    url = session.post.call_args.args[0]
    kwargs = session.post.call_args.kwargs
    assert url == "http://ollama.test:11434/api/generate"
    assert kwargs["timeout"] == 12
    assert kwargs["json"] == {
        "model": "llama3.2",
        "prompt": "user prompt",
        "system": "system text",
        "stream": False,
        "options": {"temperature": 0.1, "top_p": 0.9},
    }


def test_missing_response_field_is_empty():
    session = mock.Mock()
    session.post.return_value = ok_response({"done": True})
    assert make_client(session).generate_sync("s", "p") == ""


def test_async_generate():
    session = mock.Mock()
    session.post.return_value = ok_response({"response": "hi"})
    assert asyncio.run(make_client(session).generate("s", "p")) == "hi"


# ── Error mapping ────────────────────────────────────────────────────

def test_connection_refused_is_unavailable():
    session = mock.Mock()
    session.post.side_effect = requests.ConnectionError("refused")
    with pytest.raises(LLMUnavailableError) as exc_info:
        make_client(session).generate_sync("s", "p")
    assert exc_info.value.status_code == 503


def test_timeout_is_generic_llm_error():
    session = mock.Mock()
    session.post.side_effect = requests.Timeout("slow")
    with pytest.raises(LLMError) as exc_info:
        make_client(session, timeout=3).generate_sync("s", "p")
    assert not isinstance(exc_info.value, LLMUnavailableError)
    assert "timed out" in exc_info.value.message


def test_http_error_status():
    session = mock.Mock()
    resp = mock.Mock()
    resp.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
    session.post.return_value = resp
    with pytest.raises(LLMError, match="Failed to process AI request"):
        make_client(session).generate_sync("s", "p")


def test_non_json_body():
    session = mock.Mock()
    resp = ok_response(None)
    resp.json.side_effect = ValueError("not json")
    session.post.return_value = resp
    with pytest.raises(LLMError):
        make_client(session).generate_sync("s", "p")


def test_async_timeout_bounds_the_call():
    session = mock.Mock()

    def slow_post(*args, **kwargs):
        time.sleep(0.3)
        return ok_response({"response": "late"})

    session.post.side_effect = slow_post
    client = make_client(session, timeout=0.05)
    with pytest.raises(LLMError, match="timed out"):
        asyncio.run(client.generate("s", "p"))


# ── Health ───────────────────────────────────────────────────────────

def test_health_check():
    session = mock.Mock()
    session.get.return_value = mock.Mock(status_code=200)
    client = make_client(session)
    assert client.check_health()
    assert session.get.call_args.args[0] == "http://ollama.test:11434/api/tags"

    session.get.return_value = mock.Mock(status_code=500)
    assert not client.check_health()

    session.get.side_effect = requests.ConnectionError("down")
    assert not client.check_health()
