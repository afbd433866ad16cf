# tests/test_reasoners.py
import types
from unittest import mock

import httpx
import openai
import pytest
import requests

from referral_scout.lib.backoff import ErrorClass, classify_error
from referral_scout.lib.config import Settings
from referral_scout.lib.errors import ConfigError, PermanentRemoteError, RemoteCallError, TransientRemoteError
from referral_scout.lib.http_client import HttpClient
from referral_scout.lib.reasoners import GeminiReasoner, OpenAIReasoner, StubReasoner, make_reasoner, registry


def _response(status: int, payload=None, text: str = ""):
    resp = mock.Mock(spec=requests.Response)
    resp.status_code = status
    resp.text = text
    if payload is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload
    return resp


class FakeClient:
    """Records post_json calls and returns a canned payload."""

    def __init__(self, payload):
        self.payload = payload
        self.calls = []
        self.closed = False

    def post_json(self, url, body, *, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "body": body, "params": params})
        return self.payload

    def close(self):
        self.closed = True


# ----------------------------------------------------------------------
# Registry / factory
# ----------------------------------------------------------------------
def test_registry_knows_all_kinds():
    assert {"gemini", "openai", "stub"} <= set(registry.all_kinds())
    assert registry.get("GEMINI") is GeminiReasoner


def test_registry_rejects_conflicting_kind():
    class Impostor(StubReasoner):
        kind = "stub"

    with pytest.raises(ValueError):
        registry.register(Impostor)


def test_make_reasoner(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "k-123")
    assert isinstance(make_reasoner(Settings.from_env_and_kwargs({})), GeminiReasoner)
    assert isinstance(make_reasoner(Settings.from_env_and_kwargs({"reasoner": "stub"})), StubReasoner)

    with pytest.raises(ConfigError):
        make_reasoner(Settings.from_env_and_kwargs({"reasoner": "oracle"}))


def test_missing_api_key_is_config_error(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ConfigError):
        make_reasoner(Settings.from_env_and_kwargs({"reasoner": "openai"}))


# ----------------------------------------------------------------------
# Gemini
# ----------------------------------------------------------------------
def test_gemini_request_and_response_shape():
    client = FakeClient({"candidates": [{"content": {"parts": [{"text": '{"eligible": true}'}]}}]})
    r = GeminiReasoner(api_key="k-123", model="gemini-test", temperature=0.2, client=client)

    assert r.complete("hello") == '{"eligible": true}'

    call = client.calls[0]
    assert call["url"].endswith("/models/gemini-test:generateContent")
    assert call["params"] == {"key": "k-123"}
    assert call["body"]["contents"][0]["parts"][0]["text"] == "hello"
    assert call["body"]["generationConfig"] == {"temperature": 0.2}

    r.close()
    assert client.closed


def test_gemini_unexpected_shape_is_permanent():
    r = GeminiReasoner(api_key="k", client=FakeClient({"promptFeedback": {"blockReason": "SAFETY"}}))
    with pytest.raises(PermanentRemoteError):
        r.complete("hello")


# ----------------------------------------------------------------------
# HTTP transport
# ----------------------------------------------------------------------
def test_http_error_carries_status_and_payload_without_key():
    client = HttpClient()
    body = {"error": {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}}
    with mock.patch.object(client.session, "post", return_value=_response(429, body)):
        with pytest.raises(RemoteCallError) as exc:
            client.post_json("https://api.example.com/v1/x?key=secret", {}, params={"key": "secret"})

    assert exc.value.status == 429
    assert exc.value.payload == body
    assert "secret" not in str(exc.value)
    assert classify_error(exc.value) is ErrorClass.QUOTA


def test_http_network_error_is_transient():
    client = HttpClient()
    with mock.patch.object(client.session, "post", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(TransientRemoteError):
            client.post_json("https://api.example.com/v1/x", {})


def test_http_non_json_success_is_permanent():
    client = HttpClient()
    with mock.patch.object(client.session, "post", return_value=_response(200, None, "<html>oops</html>")):
        with pytest.raises(PermanentRemoteError):
            client.post_json("https://api.example.com/v1/x", {})


def test_http_503_text_body_is_transient():
    client = HttpClient()
    with mock.patch.object(client.session, "post", return_value=_response(503, None, "Service Unavailable")):
        with pytest.raises(RemoteCallError) as exc:
            client.post_json("https://api.example.com/v1/x", {})
    assert exc.value.payload == "Service Unavailable"
    assert classify_error(exc.value) is ErrorClass.TRANSIENT


# ----------------------------------------------------------------------
# OpenAI
# ----------------------------------------------------------------------
def _openai_client(create):
    return types.SimpleNamespace(chat=types.SimpleNamespace(completions=types.SimpleNamespace(create=create)))


def test_openai_complete_returns_message_content():
    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        msg = types.SimpleNamespace(content='  {"eligible": false, "message": ""}  ')
        return types.SimpleNamespace(choices=[types.SimpleNamespace(message=msg)])

    r = OpenAIReasoner(api_key="", client=_openai_client(create), model="gpt-test")

    assert r.complete("hello") == '{"eligible": false, "message": ""}'
    assert seen["model"] == "gpt-test"
    assert seen["messages"][-1] == {"role": "user", "content": "hello"}
    assert "temperature" not in seen


def test_openai_connection_error_is_transient():
    def create(**kwargs):
        raise openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))

    r = OpenAIReasoner(api_key="", client=_openai_client(create))
    with pytest.raises(TransientRemoteError):
        r.complete("hello")


def test_openai_empty_choices_is_permanent():
    r = OpenAIReasoner(api_key="", client=_openai_client(lambda **kw: types.SimpleNamespace(choices=[])))
    with pytest.raises(PermanentRemoteError):
        r.complete("hello")


# ----------------------------------------------------------------------
# Stub
# ----------------------------------------------------------------------
def test_stub_plays_back_then_repeats_last():
    r = StubReasoner(["a", TransientRemoteError("busy"), "b"])
    assert r.complete("p1") == "a"
    with pytest.raises(TransientRemoteError):
        r.complete("p2")
    assert r.complete("p3") == "b"
    assert r.complete("p4") == "b"
    assert r.prompts == ["p1", "p2", "p3", "p4"]
