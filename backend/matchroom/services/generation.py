"""OpenAI-backed prompt and commentary generators.

Both generators turn one chat completion into a list of lines. Every
failure (missing key, timeout, API error, empty response) surfaces as
``UpstreamFailure``; neither generator retries on its own.
"""

from __future__ import annotations

import random
import re
from typing import Any, Callable, Iterable, Optional, Sequence, Tuple

from openai import APITimeoutError, OpenAI, OpenAIError

from matchroom.errors import UpstreamFailure
from matchroom.services import templates

_BULLET = re.compile(r'^(?:[-*・•]\s*|\d+[.)．、]\s*)')


def build_openai_client(api_key: Optional[str]) -> Callable[[], Any]:
    """Return a factory that creates the OpenAI client on first use."""
    cache: dict = {}

    def factory():
        if 'client' not in cache:
            if not api_key:
                raise UpstreamFailure('OPENAI_API_KEY is not set')
            # Retries are the caller's decision
            cache['client'] = OpenAI(api_key=api_key, max_retries=0)
        return cache['client']

    return factory


def split_lines(text: Optional[str]) -> list[str]:
    return [line.strip() for line in (text or '').strip().splitlines() if line.strip()]


def clean_prompt(line: str) -> str:
    """Strip bullets, numbering, quote brackets and any example answer."""
    text = (line or '').strip()
    if '→' in text:
        text = text.split('→', 1)[0].strip()
    text = _BULLET.sub('', text)
    for opener, closer in (('「', '」'), ('"', '"'), ('“', '”')):
        if text.startswith(opener):
            text = text[len(opener):]
        if text.endswith(closer):
            text = text[:-len(closer)]
    return text.strip()


class _ChatGenerator:
    provider_name = 'OpenAI'

    def __init__(self, client_factory: Callable[[], Any], model: str = 'gpt-4o-mini', timeout: float = 30.0):
        self._client_factory = client_factory
        self.model = model
        self.timeout = timeout

    def _complete(self, messages: list[dict], temperature: float, max_tokens: int) -> str:
        try:
            response = self._client_factory().chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self.timeout,
            )
        except APITimeoutError as exc:
            raise UpstreamFailure(f'{self.provider_name} request timed out after {self.timeout}s') from exc
        except OpenAIError as exc:
            raise UpstreamFailure(f'{self.provider_name} API call failed: {exc.__class__.__name__}: {exc}') from exc

        if not response.choices:
            raise UpstreamFailure(f'{self.provider_name} response did not contain any choices')
        content = response.choices[0].message.content
        if not content:
            raise UpstreamFailure(f'{self.provider_name} response did not contain any text')
        return content


class PromptGenerator(_ChatGenerator):
    """Generates new prompts. May under-deliver or repeat excluded prompts."""

    category_count = 3

    def __init__(self, client_factory, model='gpt-4o-mini', timeout=30.0, rng: Optional[random.Random] = None):
        super().__init__(client_factory, model=model, timeout=timeout)
        self._rng = rng or random.Random()

    def build_messages(self, exclude: Iterable[str], count: int) -> list[dict]:
        categories = ', '.join(self._rng.sample(templates.CATEGORIES, self.category_count))
        used = [p for p in exclude if p]
        used_block = templates.PROMPT_USED_BLOCK.format(used='\n'.join(used)) if used else ''
        return [
            {'role': 'system', 'content': templates.PROMPT_SYSTEM.format(count=count, categories=categories, used_block=used_block)},
            {'role': 'user', 'content': templates.PROMPT_USER.format(count=count, categories=categories)},
        ]

    def generate(self, exclude: Iterable[str], count: int) -> list[str]:
        text = self._complete(self.build_messages(exclude, count), temperature=1.0, max_tokens=400)
        return [p for p in (clean_prompt(line) for line in split_lines(text)) if p]


class CommentaryGenerator(_ChatGenerator):
    """Generates short reactions to a round's answers, capped at ``limit``."""

    def __init__(self, client_factory, model='gpt-4o-mini', timeout=60.0, limit=30):
        super().__init__(client_factory, model=model, timeout=timeout)
        self.limit = limit

    def build_messages(self, prompt: str, answers: Sequence[Tuple[str, Optional[str]]]) -> list[dict]:
        names = ', '.join(name for name, _ in answers)
        lines = '\n'.join(f'{name}: {text or templates.NO_ANSWER}' for name, text in answers)
        content = templates.COMMENTARY.format(prompt=prompt, limit=self.limit, names=names, answers=lines)
        return [{'role': 'user', 'content': content}]

    def generate(self, prompt: str, answers: Sequence[Tuple[str, Optional[str]]]) -> list[str]:
        text = self._complete(self.build_messages(prompt, answers), temperature=0.9, max_tokens=1000)
        return split_lines(text)[:self.limit]
