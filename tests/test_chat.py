"""
Tests for the single-turn chat relay.
"""
import httpx
import openai
import pytest

from taskboard.chat import FALLBACK_ANSWER, relay_chat
from taskboard.errors import ChatConfigError, ChatUpstreamError

from .fakes import FakeOpenAI, completion


def factory_for(fake):
    keys = []

    def factory(api_key):
        keys.append(api_key)
        return fake

    factory.keys = keys
    return factory


def status_error(status, body):
    request = httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')
    response = httpx.Response(status, request=request, text=body)
    return openai.APIStatusError('upstream failed', response=response, body=None)


def test_sends_single_user_message_with_fixed_model():
    fake = FakeOpenAI(result=completion('Three things: ...'))
    factory = factory_for(fake)

    answer = relay_chat('Plan my morning', 'sk-test', model='gpt-4o-mini', client_factory=factory)

    assert answer == 'Three things: ...'
    assert factory.keys == ['sk-test']
    assert fake.completions.calls == [{
        'model': 'gpt-4o-mini',
        'messages': [{'role': 'user', 'content': 'Plan my morning'}],
    }]


def test_calls_are_stateless():
    fake = FakeOpenAI(result=completion('ok'))
    factory = factory_for(fake)
    relay_chat('first', 'sk-test', client_factory=factory)
    relay_chat('second', 'sk-test', client_factory=factory)
    assert [len(c['messages']) for c in fake.completions.calls] == [1, 1]


def test_missing_key_is_config_error():
    fake = FakeOpenAI(result=completion('unused'))
    with pytest.raises(ChatConfigError):
        relay_chat('hi', '', client_factory=factory_for(fake))
    assert fake.completions.calls == []


def test_provider_error_carries_detail():
    body = '{"error": {"message": "Invalid API key"}}'
    fake = FakeOpenAI(error=status_error(401, body))
    with pytest.raises(ChatUpstreamError) as excinfo:
        relay_chat('hi', 'sk-bad', client_factory=factory_for(fake))
    assert excinfo.value.detail == body


@pytest.mark.parametrize('result', [
    completion(None),
    completion('   '),
    type('Empty', (), {'choices': []})(),
])
def test_empty_response_returns_fallback(result):
    fake = FakeOpenAI(result=result)
    assert relay_chat('hi', 'sk-test', client_factory=factory_for(fake)) == FALLBACK_ANSWER
