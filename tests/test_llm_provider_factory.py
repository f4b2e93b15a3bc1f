"""
Unit tests for the LLM provider factory and providers.

Provider SDK clients are mocked; no network calls are made.
"""

import sys
import os
import json
import pytest
from unittest.mock import MagicMock, patch

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.llm_models.solution_models import ModelResponse
from services.llm_provider_factory import (
    GeminiProvider,
    ImageAttachment,
    LLMProviderFactory,
    MistralProvider,
    OpenAIProvider,
    StructuredOutputError,
    get_llm_client,
    parse_structured_content,
    strip_markdown_code_fences,
)

RESPONSE_JSON = json.dumps({
    'summary': '2 ile 2nin toplamı',
    'steps': [{'step': 1, 'text': 'Topla', 'latex': '2+2=4'}],
    'latex': '2+2',
    'final_answer': '4',
    'hints': [],
    'confidence': 0.9
})


def make_chat_response(content, model='test-model'):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.model = model
    response.usage.prompt_tokens = 10
    response.usage.completion_tokens = 20
    response.usage.total_tokens = 30
    return response


class TestHelpers:

    def test_strip_json_fence(self):
        assert strip_markdown_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strip_plain_fence(self):
        assert strip_markdown_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        assert strip_markdown_code_fences('  {"a": 1} ') == '{"a": 1}'

    def test_parse_structured_content(self):
        parsed = parse_structured_content(f'```json\n{RESPONSE_JSON}\n```', ModelResponse)

        assert parsed.final_answer == '4'
        assert parsed.steps[0].formula == '2+2=4'
        assert parsed.steps[0].step_number == 1

    def test_parse_invalid_json(self):
        with pytest.raises(StructuredOutputError):
            parse_structured_content('not json', ModelResponse)

    def test_parse_missing_fields(self):
        with pytest.raises(StructuredOutputError):
            parse_structured_content('{"summary": "x"}', ModelResponse)

    def test_parse_empty(self):
        with pytest.raises(RuntimeError) as exc_info:
            parse_structured_content('', ModelResponse)
        assert not isinstance(exc_info.value, StructuredOutputError)

    def test_image_data_url(self):
        attachment = ImageAttachment(data=b'abc', mime_type='image/png')
        assert attachment.to_data_url() == 'data:image/png;base64,YWJj'


class TestLLMProviderFactory:

    def test_unsupported_provider(self):
        with pytest.raises(ValueError, match='Unsupported LLM provider'):
            LLMProviderFactory.create_provider('unknown')

    @patch.dict(os.environ, {'LLM_PROVIDER': 'openai', 'OPENAI_API_KEY': 'test_key'})
    @patch('openai.OpenAI')
    def test_provider_from_environment(self, mock_openai):
        provider = get_llm_client()

        assert isinstance(provider, OpenAIProvider)
        mock_openai.assert_called_once_with(api_key='test_key')

    @patch.dict(os.environ, {'GEMINI_API_KEY': 'test_key'})
    @patch('google.genai.Client')
    def test_provider_name_case_insensitive(self, mock_client):
        provider = LLMProviderFactory.create_provider('Gemini')

        assert isinstance(provider, GeminiProvider)
        assert provider.get_provider_name() == 'gemini'

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_gemini_key(self):
        with pytest.raises(ValueError, match='GEMINI_API_KEY'):
            LLMProviderFactory.create_provider('gemini')

    @patch.dict(os.environ, {'GOOGLE_AI_API_KEY': 'alt_key'}, clear=True)
    @patch('google.genai.Client')
    def test_alternate_gemini_key(self, mock_client):
        GeminiProvider()

        mock_client.assert_called_once_with(api_key='alt_key')

    @patch.dict(os.environ, {}, clear=True)
    def test_default_models(self):
        assert LLMProviderFactory.get_default_model() == 'gemini-2.5-flash'
        assert LLMProviderFactory.get_default_model('openai') == 'gpt-4o-mini'
        assert LLMProviderFactory.get_default_model('mistral') == 'pixtral-12b-latest'

    @patch.dict(os.environ, {'LLM_MODEL': 'gemini-2.5-pro'})
    def test_model_override(self):
        assert LLMProviderFactory.get_default_model('gemini') == 'gemini-2.5-pro'


class TestGeminiProvider:

    @pytest.fixture
    def provider(self):
        with patch('google.genai.Client') as mock_client:
            mock_response = MagicMock()
            mock_response.text = RESPONSE_JSON
            mock_response.usage_metadata.prompt_token_count = 10
            mock_response.usage_metadata.candidates_token_count = 20
            mock_response.usage_metadata.total_token_count = 30
            mock_client.return_value.models.generate_content.return_value = mock_response

            yield GeminiProvider(api_key='test_key')

    def test_structured_completion(self, provider):
        messages = [
            {'role': 'system', 'content': 'Sen bir öğretmensin'},
            {'role': 'user', 'content': '2+2?'}
        ]

        result = provider.create_structured_completion(
            messages=messages,
            response_model=ModelResponse,
            model='gemini-2.5-flash'
        )

        assert result['parsed_object'].final_answer == '4'
        assert result['usage']['total_tokens'] == 30

        kwargs = provider.client.models.generate_content.call_args.kwargs
        assert kwargs['model'] == 'gemini-2.5-flash'
        assert kwargs['contents'] == ['2+2?']
        assert kwargs['config']['system_instruction'] == 'Sen bir öğretmensin'
        assert kwargs['config']['response_mime_type'] == 'application/json'
        assert kwargs['config']['response_json_schema'] == ModelResponse.model_json_schema()

    def test_image_sent_before_prompt(self, provider):
        provider.create_structured_completion(
            messages=[{'role': 'user', 'content': 'Fotoğraftaki soru'}],
            response_model=ModelResponse,
            model='gemini-2.5-flash',
            attachments=[ImageAttachment(data=b'\x89PNG', mime_type='image/png')]
        )

        contents = provider.client.models.generate_content.call_args.kwargs['contents']
        assert len(contents) == 2
        assert contents[0].inline_data.data == b'\x89PNG'
        assert contents[0].inline_data.mime_type == 'image/png'
        assert contents[1] == 'Fotoğraftaki soru'

    def test_undecodable_response(self, provider):
        provider.client.models.generate_content.return_value.text = '{"summary": '

        with pytest.raises(StructuredOutputError):
            provider.create_structured_completion(
                messages=[{'role': 'user', 'content': 'soru'}],
                response_model=ModelResponse,
                model='gemini-2.5-flash'
            )


class TestOpenAIProvider:

    @pytest.fixture
    def provider(self):
        with patch('openai.OpenAI'):
            yield OpenAIProvider(api_key='test_key')

    def test_parse_success(self, provider):
        parsed = ModelResponse.model_validate_json(RESPONSE_JSON)
        response = make_chat_response(RESPONSE_JSON, model='gpt-4o-mini')
        response.choices[0].message.parsed = parsed
        provider.client.beta.chat.completions.parse.return_value = response

        result = provider.create_structured_completion(
            messages=[{'role': 'user', 'content': 'soru'}],
            response_model=ModelResponse,
            model='gpt-4o-mini'
        )

        assert result['parsed_object'] is parsed
        assert result['model'] == 'gpt-4o-mini'

    def test_fallback_to_json_mode(self, provider):
        provider.client.beta.chat.completions.parse.side_effect = Exception('schema not supported')
        provider.client.chat.completions.create.return_value = make_chat_response(RESPONSE_JSON)

        result = provider.create_structured_completion(
            messages=[{'role': 'user', 'content': 'soru'}],
            response_model=ModelResponse,
            model='gpt-4o-mini',
            attachments=[ImageAttachment(data=b'abc', mime_type='image/jpeg')]
        )

        assert result['parsed_object'].final_answer == '4'

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs['response_format'] == {'type': 'json_object'}
        content = kwargs['messages'][0]['content']
        assert content[0] == {'type': 'image_url', 'image_url': {'url': 'data:image/jpeg;base64,YWJj'}}
        assert content[1] == {'type': 'text', 'text': 'soru'}

    def test_fallback_failure(self, provider):
        provider.client.beta.chat.completions.parse.side_effect = Exception('schema not supported')
        provider.client.chat.completions.create.side_effect = Exception('network down')

        with pytest.raises(RuntimeError, match='fallback also failed'):
            provider.create_structured_completion(
                messages=[{'role': 'user', 'content': 'soru'}],
                response_model=ModelResponse,
                model='gpt-4o-mini'
            )


class TestMistralProvider:

    @pytest.fixture
    def provider(self):
        with patch('mistralai.Mistral'):
            yield MistralProvider(api_key='test_key')

    def test_json_mode_with_image(self, provider):
        provider.client.chat.complete.return_value = make_chat_response(
            f'```json\n{RESPONSE_JSON}\n```', model='pixtral-12b-latest'
        )

        result = provider.create_structured_completion(
            messages=[{'role': 'user', 'content': 'soru'}],
            response_model=ModelResponse,
            model='pixtral-12b-latest',
            attachments=[ImageAttachment(data=b'abc', mime_type='image/png')]
        )

        assert result['parsed_object'].final_answer == '4'

        kwargs = provider.client.chat.complete.call_args.kwargs
        assert kwargs['response_format'] == {'type': 'json_object'}
        assert kwargs['messages'][0]['content'][0] == {
            'type': 'image_url',
            'image_url': 'data:image/png;base64,YWJj'
        }

    def test_request_failure(self, provider):
        provider.client.chat.complete.side_effect = Exception('rate limited')

        with pytest.raises(RuntimeError, match='rate limited'):
            provider.create_structured_completion(
                messages=[{'role': 'user', 'content': 'soru'}],
                response_model=ModelResponse,
                model='pixtral-12b-latest'
            )
