import random
from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError, APITimeoutError

from matchroom.errors import UpstreamFailure
from matchroom.services.generation import (
    CommentaryGenerator,
    PromptGenerator,
    build_openai_client,
    clean_prompt,
    split_lines,
)


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        choices = [] if self.content is None else [SimpleNamespace(message=SimpleNamespace(content=self.content))]
        return SimpleNamespace(choices=choices)


def fake_client(completions):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return lambda: client


def _request():
    return httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')


def test_clean_prompt_strips_decorations():
    assert clean_prompt('1. Favorite fruit') == 'Favorite fruit'
    assert clean_prompt('- "A red food"') == 'A red food'
    assert clean_prompt('・「Something cold」') == 'Something cold'
    assert clean_prompt('3) A pet name → Pochi') == 'A pet name'
    assert split_lines('\n a \n\n b\n') == ['a', 'b']


def test_prompt_generator_sends_exclusions_and_parses_lines():
    completions = FakeCompletions(content='1. A sweet snack\n2. "Something blue"\n\n3. A winter sport → skiing\n')
    generator = PromptGenerator(fake_client(completions), model='test-model', timeout=30, rng=random.Random(1))

    prompts = generator.generate({'An old prompt'}, 3)

    assert prompts == ['A sweet snack', 'Something blue', 'A winter sport']
    call = completions.calls[0]
    assert call['model'] == 'test-model'
    assert call['timeout'] == 30
    assert 'An old prompt' in call['messages'][0]['content']


def test_prompt_generator_omits_used_block_without_exclusions():
    generator = PromptGenerator(fake_client(FakeCompletions(content='x')), rng=random.Random(0))
    with_used = generator.build_messages({'Seen before'}, 5)[0]['content']
    without_used = generator.build_messages(set(), 5)[0]['content']
    assert 'Seen before' in with_used
    assert 'Seen before' not in without_used


def test_commentary_generator_truncates_and_marks_missing_answers():
    lines = '\n'.join(f'line {i}' for i in range(40))
    completions = FakeCompletions(content=lines)
    generator = CommentaryGenerator(fake_client(completions), timeout=60, limit=30)

    result = generator.generate('A sweet snack', [('Alice', 'cake'), ('Bob', None)])

    assert len(result) == 30
    assert result[0] == 'line 0'
    content = completions.calls[0]['messages'][0]['content']
    assert 'Alice: cake' in content
    assert 'Bob: (no answer)' in content
    assert completions.calls[0]['timeout'] == 60


def test_timeout_maps_to_upstream_failure():
    completions = FakeCompletions(error=APITimeoutError(request=_request()))
    generator = CommentaryGenerator(fake_client(completions), timeout=60)
    with pytest.raises(UpstreamFailure) as excinfo:
        generator.generate('prompt', [('Alice', 'x')])
    assert 'timed out' in excinfo.value.message


def test_api_error_maps_to_upstream_failure():
    completions = FakeCompletions(error=APIConnectionError(request=_request()))
    generator = PromptGenerator(fake_client(completions))
    with pytest.raises(UpstreamFailure):
        generator.generate(set(), 5)


@pytest.mark.parametrize('content', [None, ''])
def test_empty_response_is_upstream_failure(content):
    generator = PromptGenerator(fake_client(FakeCompletions(content=content)))
    with pytest.raises(UpstreamFailure):
        generator.generate(set(), 5)


def test_missing_api_key_fails_on_first_use():
    factory = build_openai_client('')
    with pytest.raises(UpstreamFailure):
        factory()


def test_client_factory_builds_client_once():
    factory = build_openai_client('sk-test')
    assert factory() is factory()
