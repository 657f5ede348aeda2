"""
Single-turn chat relay to the OpenAI chat completions API.

No conversation history is kept: each call sends exactly one user message
and returns the text of the first choice.
"""

import logging

import openai
from openai import OpenAI

from .config import DEFAULT_CHAT_MODEL
from .errors import ChatConfigError, ChatUpstreamError

FALLBACK_ANSWER = 'No valid answer was returned by the assistant.'

logger = logging.getLogger(__name__)


def make_client(api_key):
    # No retries: a failed call is reported once.
    return OpenAI(api_key=api_key, max_retries=0)


def extract_answer(completion):
    choices = getattr(completion, 'choices', None) or []
    if not choices:
        return None
    message = getattr(choices[0], 'message', None)
    content = getattr(message, 'content', None)
    if isinstance(content, str) and content.strip():
        return content
    return None


def relay_chat(message, api_key, model=DEFAULT_CHAT_MODEL, client_factory=None):
    if not api_key:
        raise ChatConfigError('OPENAI_API_KEY is missing')

    client = (client_factory or make_client)(api_key)
    try:
        completion = client.chat.completions.create(
            model=model,
            messages=[{'role': 'user', 'content': message}],
        )
    except openai.APIStatusError as exc:
        detail = exc.response.text if exc.response is not None else str(exc)
        logger.error('OpenAI API error (%s): %s', exc.status_code, detail)
        raise ChatUpstreamError('OpenAI API error', detail=detail) from exc
    except openai.APIError as exc:
        logger.error('OpenAI API error: %s', exc)
        raise ChatUpstreamError('OpenAI API error', detail=str(exc)) from exc

    answer = extract_answer(completion)
    if answer is None:
        logger.warning('OpenAI response for model %s had no message content', model)
        return FALLBACK_ANSWER
    return answer
