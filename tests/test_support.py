"""
Tests for speech warnings, JSON extraction, prompts and the LLM client.
"""
import pytest

from aide.core.checklist import ChecklistItem
from aide.processing.llm_client import LLMClient
from aide.processing.parsing import parse_json_array, parse_json_object
from aide.prompts.advice import build_advice_user_message
from aide.prompts.checklist import format_checklist_for_prompt, get_generation_system_prompt
from aide.voice.speech import TextToSpeech, WarningGuard, build_skip_warning


class TestSkipWarning:
    """Warning text and single-flight guard."""

    def test_single_step(self):
        message = build_skip_warning(['Boil water'])
        assert message == ("Wait! It looks like you skipped: Boil water. "
                           "Make sure to complete that step first.")

    def test_multiple_steps_math(self):
        message = build_skip_warning(['Isolate x', 'Divide'], mode='math')
        assert message.startswith('Hold on!')
        assert 'Isolate x, Divide' in message
        assert 'those steps' in message

    def test_empty(self):
        assert build_skip_warning([]) == ''

    def test_guard(self):
        guard = WarningGuard()
        assert guard.acquire() is True
        assert guard.acquire() is False
        guard.release()
        assert guard.acquire() is True


class TestTextToSpeech:
    """TTS validation without network access."""

    def test_missing_key(self):
        with pytest.raises(RuntimeError):
            TextToSpeech(api_key='').synthesize('hello')

    def test_empty_text(self):
        with pytest.raises(ValueError):
            TextToSpeech(api_key='sk-test').synthesize('  ')

    def test_mimetype(self):
        assert TextToSpeech().mimetype == 'audio/mpeg'


class TestParsing:
    """Lenient JSON extraction."""

    def test_object_in_fence(self):
        assert parse_json_object('```json\n{"a": 1}\n```') == {'a': 1}

    def test_object_rejects_array(self):
        assert parse_json_object('[1, 2]') is None

    def test_array_in_prose(self):
        assert parse_json_array('Completed: ["1", "2"] done') == ['1', '2']

    @pytest.mark.parametrize('text', ['', None, 'nothing here', '{broken'])
    def test_garbage(self, text):
        assert parse_json_object(text) is None
        assert parse_json_array(text) is None


class TestPrompts:
    """Prompt builders."""

    def test_advice_message_with_hint(self):
        message = build_advice_user_message('Dough rising', context_hint='bread')
        assert message == "What I'm seeing in the kitchen: Dough rising\n(I'm making: bread)"

    def test_math_advice_message(self):
        message = build_advice_user_message('2x = 4', mode='math', context_hint='algebra')
        assert message.startswith('Current status of the math problem: 2x = 4')
        assert '(The topic is: algebra)' in message

    def test_generation_prompt_bounds(self):
        prompt = get_generation_system_prompt('cooking', max_items=8)
        assert '5-8 actionable' in prompt
        assert '"title": "Recipe/Dish Name"' in prompt

    def test_format_checklist(self):
        text = format_checklist_for_prompt([ChecklistItem('a', 'Chop', True), ChecklistItem('b', 'Fry')])
        assert text == "1. [COMPLETED] Chop (id: a)\n2. [NOT COMPLETED] Fry (id: b)"


class _Message:
    def __init__(self, content):
        self.content = content


class _Choice:
    def __init__(self, content):
        self.message = _Message(content)


class _Completion:
    def __init__(self, content):
        self.choices = [_Choice(content)]


class _Completions:
    def __init__(self):
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        return _Completion('  hello ')


class _Chat:
    def __init__(self):
        self.completions = _Completions()


class FakeOpenAI:
    def __init__(self):
        self.chat = _Chat()


class _TextBlock:
    type = 'text'

    def __init__(self, text):
        self.text = text


class _AnthropicMessages:
    def __init__(self):
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs

        class Response:
            content = [_TextBlock('Use less salt.')]
        return Response()


class FakeAnthropic:
    def __init__(self):
        self.messages = _AnthropicMessages()


class TestLLMClient:
    """Provider dispatch with injected SDK clients."""

    def test_missing_key_raises_on_call(self):
        client = LLMClient(provider='openai', api_key='  ')
        with pytest.raises(RuntimeError, match='OpenAI API key is not configured'):
            client.complete([{'role': 'user', 'content': 'hi'}])

    def test_unsupported_provider(self):
        with pytest.raises(ValueError):
            LLMClient(provider='llamacorp')

    def test_openai_request(self):
        client = LLMClient(provider='openai', api_key='sk-test', max_tokens=50)
        client._client = FakeOpenAI()
        reply = client.complete([{'role': 'user', 'content': 'hi'}], temperature=0.2)

        kwargs = client._client.chat.completions.kwargs
        assert reply == '  hello '
        assert kwargs['model'] == 'gpt-4o-mini'
        assert kwargs['max_completion_tokens'] == 50
        assert kwargs['temperature'] == 0.2

    def test_openai_omits_temperature_by_default(self):
        client = LLMClient(provider='openai', api_key='sk-test')
        client._client = FakeOpenAI()
        client.complete([{'role': 'user', 'content': 'hi'}], model='gpt-5-nano')
        kwargs = client._client.chat.completions.kwargs
        assert 'temperature' not in kwargs
        assert kwargs['model'] == 'gpt-5-nano'

    def test_anthropic_moves_system_prompt(self):
        client = LLMClient(provider='anthropic', api_key='sk-ant-test')
        client._client = FakeAnthropic()
        reply = client.complete([
            {'role': 'system', 'content': 'Be brief.'},
            {'role': 'user', 'content': 'Salty soup?'},
        ])

        kwargs = client._client.messages.kwargs
        assert reply == 'Use less salt.'
        assert kwargs['system'] == 'Be brief.'
        assert kwargs['messages'] == [{'role': 'user', 'content': 'Salty soup?'}]
