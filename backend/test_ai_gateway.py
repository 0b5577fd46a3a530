import asyncio
from types import SimpleNamespace

import pytest

import ai_gateway
from ai_gateway import AIGateway, ConfigurationMissing, UpstreamUnavailable, compose_prompt


class FakeCompletions:
    def __init__(self, content="{}", error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


class FakeTranslations:
    def __init__(self):
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return "  my landlord took my deposit \n"


def _client(completions, translations=None):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=completions),
        audio=SimpleNamespace(translations=translations or FakeTranslations()),
    )


def test_compose_prompt_with_and_without_context():
    assert compose_prompt("what is rti") == 'User query: "what is rti"'
    prompt = compose_prompt("what is rti", "RELEVANT LEGAL CONTEXT: ...")
    assert prompt.startswith('User query: "what is rti"')
    assert prompt.endswith("RELEVANT LEGAL CONTEXT: ...")


def test_unconfigured_gateway_refuses_without_calling():
    gateway = AIGateway(api_key=None)
    assert not gateway.configured
    with pytest.raises(ConfigurationMissing):
        asyncio.run(gateway.generate("how to file an fir"))


def test_generate_returns_raw_content():
    completions = FakeCompletions(content='{"response": "ok"}')
    gateway = AIGateway(client=_client(completions), model="text-model")

    raw = asyncio.run(gateway.generate("how to file an fir", context="CTX"))

    assert raw == '{"response": "ok"}'
    assert len(completions.calls) == 1
    call = completions.calls[0]
    assert call["model"] == "text-model"
    assert call["response_format"] == {"type": "json_object"}
    assert call["messages"][0]["role"] == "system"
    assert "CTX" in call["messages"][1]["content"]


def test_visual_query_uses_vision_model_and_data_uri():
    completions = FakeCompletions()
    gateway = AIGateway(client=_client(completions), vision_model="vision-model")

    asyncio.run(gateway.generate("what does this notice say", image_b64="aGVsbG8="))

    call = completions.calls[0]
    assert call["model"] == "vision-model"
    parts = call["messages"][1]["content"]
    assert parts[0]["type"] == "text"
    assert parts[1]["image_url"]["url"] == "data:image/jpeg;base64,aGVsbG8="


def test_provider_failure_is_wrapped_and_not_retried():
    completions = FakeCompletions(error=RuntimeError("rate limited"))
    gateway = AIGateway(client=_client(completions))

    with pytest.raises(UpstreamUnavailable, match="rate limited"):
        asyncio.run(gateway.generate("hello"))
    assert len(completions.calls) == 1


def test_empty_content_becomes_empty_string():
    gateway = AIGateway(client=_client(FakeCompletions(content=None)))
    assert asyncio.run(gateway.generate("hello")) == ""


def test_transcribe_strips_text():
    translations = FakeTranslations()
    gateway = AIGateway(client=_client(FakeCompletions(), translations), whisper_model="whisper-x")

    text = asyncio.run(gateway.transcribe("clip.webm", b"\x00\x01"))

    assert text == "my landlord took my deposit"
    assert translations.calls[0]["file"] == ("clip.webm", b"\x00\x01")
    assert translations.calls[0]["model"] == "whisper-x"


def test_get_gateway_is_built_from_settings(monkeypatch):
    monkeypatch.setattr(ai_gateway, "_gateway", None)
    monkeypatch.setattr(ai_gateway.Settings, "GROQ_API_KEY", None)
    gateway = ai_gateway.get_gateway()
    assert gateway is ai_gateway.get_gateway()
    assert not gateway.configured


def test_real_client_has_no_retries_and_a_bounded_timeout(monkeypatch):
    built = []

    class RecordingGroq:
        def __init__(self, **kwargs):
            built.append(kwargs)

    monkeypatch.setattr(ai_gateway, "Groq", RecordingGroq)
    gateway = AIGateway(api_key="gsk-test")

    client = gateway.client

    assert isinstance(client, RecordingGroq)
    assert gateway.client is client
    assert built == [{
        "api_key": "gsk-test",
        "timeout": ai_gateway.Settings.AI_TIMEOUT_SECONDS,
        "max_retries": 0,
    }]


def test_explicit_timeout_is_passed_through(monkeypatch):
    built = []
    monkeypatch.setattr(ai_gateway, "Groq", lambda **kwargs: built.append(kwargs) or object())

    AIGateway(api_key="gsk-test", timeout=3.5).client

    assert built[0]["timeout"] == 3.5
    assert built[0]["max_retries"] == 0
