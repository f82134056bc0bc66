import asyncio
from types import SimpleNamespace

import pytest

from cryptodash.providers.completion import CompletionClient
from cryptodash.providers.errors import NotConfiguredError, ProviderError


class _FakeMessages:
    def __init__(self, blocks):
        self.blocks = blocks
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(content=self.blocks)


def _fake_client(blocks):
    messages = _FakeMessages(blocks)
    return SimpleNamespace(messages=messages), messages


def test_complete_sends_single_user_message():
    client, messages = _fake_client([SimpleNamespace(type="text", text='{"decision": "BUY"}')])
    completion = CompletionClient(model="claude-3-5-haiku-latest", temperature=0.4, max_tokens=300, client=client)

    reply = asyncio.run(completion.complete("Analyze Bitcoin"))

    assert reply == '{"decision": "BUY"}'
    call = messages.calls[0]
    assert call["model"] == "claude-3-5-haiku-latest"
    assert call["temperature"] == 0.4
    assert call["max_tokens"] == 300
    assert call["messages"] == [{"role": "user", "content": "Analyze Bitcoin"}]
    assert "JSON" in call["system"]


def test_missing_api_key_raises_not_configured():
    completion = CompletionClient(api_key="")

    assert not completion.configured
    with pytest.raises(NotConfiguredError):
        asyncio.run(completion.complete("Analyze Bitcoin"))


def test_empty_reply_raises_provider_error():
    client, _ = _fake_client([])
    completion = CompletionClient(client=client)

    with pytest.raises(ProviderError):
        asyncio.run(completion.complete("Analyze Bitcoin"))
