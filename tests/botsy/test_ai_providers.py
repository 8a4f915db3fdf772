import requests

from packages.botsy.ai_providers import (
    AIClient,
    AIMessage,
    GeminiProvider,
    GroqProvider,
    ProviderError,
    call_with_retry,
)

from .helpers import FakeHTTP, FakeResponse


class ScriptedProvider:
    def __init__(self, name, outcomes):
        self.name = name
        self.outcomes = list(outcomes)
        self.calls = 0

    def complete(self, system_prompt, messages, max_tokens, temperature):
        self.calls += 1
        outcome = self.outcomes.pop(0) if self.outcomes else ProviderError("exhausted")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _no_sleep(delays):
    return delays.append


def test_gemini_request_shape():
    http = FakeHTTP(
        {
            "generativelanguage": FakeResponse(
                200, {"candidates": [{"content": {"parts": [{"text": "Hei!"}]}}]}
            )
        }
    )
    provider = GeminiProvider("g-key", http=http)

    text = provider.complete(
        "system",
        [AIMessage("user", "Hallo"), AIMessage("assistant", "Hei"), AIMessage("system", "x")],
        100,
        0.5,
    )

    assert text == "Hei!"
    _, _, kwargs = http.requests[0]
    body = kwargs["json"]
    assert kwargs["params"] == {"key": "g-key"}
    assert body["systemInstruction"] == {"parts": [{"text": "system"}]}
    assert [c["role"] for c in body["contents"]] == ["user", "model"]
    assert body["generationConfig"] == {"maxOutputTokens": 100, "temperature": 0.5}


def test_groq_request_shape():
    http = FakeHTTP(
        {"api.groq.com": FakeResponse(200, {"choices": [{"message": {"content": "Svar"}}]})}
    )
    provider = GroqProvider("q-key", http=http)

    assert provider.complete("sys", [AIMessage("user", "Hei")], 50, 0.1) == "Svar"
    _, _, kwargs = http.requests[0]
    assert kwargs["headers"] == {"Authorization": "Bearer q-key"}
    assert kwargs["json"]["messages"][0] == {"role": "system", "content": "sys"}
    assert kwargs["json"]["max_tokens"] == 50


def test_missing_key_is_not_retryable():
    provider = GroqProvider(None, http=FakeHTTP())
    try:
        provider.complete("s", [], 10, 0)
    except ProviderError as exc:
        assert exc.retryable is False
    else:  # pragma: no cover
        raise AssertionError("expected ProviderError")


def test_client_errors_are_not_retryable_but_429_is():
    bad_request = FakeHTTP({"groq": FakeResponse(400, text="bad")})
    throttled = FakeHTTP({"groq": FakeResponse(429, text="slow down")})

    for http, retryable in ((bad_request, False), (throttled, True)):
        try:
            GroqProvider("k", http=http).complete("s", [], 10, 0)
        except ProviderError as exc:
            assert exc.retryable is retryable


def test_call_with_retry_backs_off_exponentially():
    provider = ScriptedProvider(
        "gemini", [ProviderError("503"), requests.ConnectionError("reset"), "ok"]
    )
    delays = []

    text = call_with_retry(provider, "s", [], 10, 0.0, 3, sleep=_no_sleep(delays))

    assert text == "ok"
    assert provider.calls == 3
    assert delays == [0.2, 0.4]


def test_call_with_retry_stops_on_non_retryable():
    provider = ScriptedProvider("groq", [ProviderError("401", retryable=False), "never"])
    delays = []

    assert call_with_retry(provider, "s", [], 10, 0.0, 3, sleep=_no_sleep(delays)) is None
    assert provider.calls == 1
    assert delays == []


def test_client_returns_first_successful_provider():
    primary = ScriptedProvider("gemini", [ProviderError("down")] * 4)
    fallback = ScriptedProvider("groq", ["fra groq"])
    client = AIClient(primary, fallback, sleep=lambda _: None)

    result = client("system", [AIMessage("user", "Hei")])

    assert result.success
    assert result.provider == "groq"
    assert result.response == "fra groq"


def test_client_falls_back_to_sequential_retries():
    primary = ScriptedProvider("gemini", [ProviderError("down"), ProviderError("down"), "tredje"])
    fallback = ScriptedProvider("groq", [ProviderError("down", retryable=False)])
    client = AIClient(primary, fallback, sleep=lambda _: None)

    result = client.generate("system", [AIMessage("user", "Hei")])

    assert result.success
    assert result.provider == "gemini"
    assert result.response == "tredje"


def test_client_reports_total_failure():
    primary = ScriptedProvider("gemini", [])
    fallback = ScriptedProvider("groq", [])
    client = AIClient(primary, fallback, max_retries=2, sleep=lambda _: None)

    result = client.generate("system", [AIMessage("user", "Hei")])

    assert not result.success
    assert result.provider is None
    assert result.response == ""
