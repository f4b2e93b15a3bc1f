"""
LLM Provider Factory
Provides a unified interface for different LLM providers (Gemini, OpenAI, Mistral)
Allows easy swapping between providers via environment configuration
"""

import base64
import json
import os
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Type
from abc import ABC, abstractmethod
from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()


class StructuredOutputError(RuntimeError):
    """The provider answered, but the content could not be parsed into the response model"""


@dataclass
class ImageAttachment:
    """An uploaded image sent alongside the prompt"""
    data: bytes
    mime_type: str

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def strip_markdown_code_fences(content: str) -> str:
    """
    Strip markdown code fences from LLM response.

    Some providers wrap JSON in ```json ... ``` fences even in JSON mode.

    Examples:
        >>> strip_markdown_code_fences('```json\\n{"key": "value"}\\n```')
        '{"key": "value"}'
        >>> strip_markdown_code_fences('{"key": "value"}')
        '{"key": "value"}'
    """
    content = content.strip()

    if content.startswith('```'):
        # First line is the opening fence (```json or ```)
        lines = content.split('\n')[1:]

        if lines and lines[-1].strip() == '```':
            lines = lines[:-1]

        content = '\n'.join(lines).strip()

    return content


def parse_structured_content(content: Optional[str], response_model: Type[BaseModel]) -> BaseModel:
    """
    Parse raw JSON text into the response model.

    Raises:
        RuntimeError: If the content is empty
        StructuredOutputError: If the content is not valid JSON for the model
    """
    if not content or not content.strip():
        raise RuntimeError("Model returned an empty response")

    try:
        return response_model.model_validate_json(strip_markdown_code_fences(content))
    except (ValidationError, json.JSONDecodeError, ValueError) as e:
        logger.error(f"Failed to parse LLM response as {response_model.__name__}: {e}")
        logger.debug(f"Raw response: {content}")
        raise StructuredOutputError(f"Failed to parse LLM response as JSON: {e}")


class LLMProvider(ABC):
    """Abstract base class for LLM providers"""

    @abstractmethod
    def create_chat_completion(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
        response_format: Optional[Dict] = None,
        timeout: float = 30.0,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Create a chat completion using the provider's API.

        Returns a normalized response dictionary with:
        - content: str (the response text)
        - model: str (model used)
        - usage: dict (token usage stats)
        - raw_response: original API response object
        """
        pass

    @abstractmethod
    def get_available_models(self) -> List[str]:
        """Return list of available models for this provider"""
        pass

    @abstractmethod
    def supports_structured_output(self, model: str) -> bool:
        """Check if the model supports JSON schema structured outputs"""
        pass

    @abstractmethod
    def create_structured_completion(
        self,
        messages: List[Dict[str, Any]],
        response_model: Type[BaseModel],
        model: str,
        attachments: Optional[List[ImageAttachment]] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout: float = 30.0,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Create a structured completion using Pydantic models.

        Args:
            messages: List of message dicts with 'role' and 'content'
            response_model: Pydantic BaseModel class to parse response into
            model: Model name to use
            attachments: Images to send with the last user message
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens in response
            timeout: Request timeout in seconds
            **kwargs: Additional provider-specific parameters

        Returns:
            Dict containing:
            - parsed_object: Pydantic model instance
            - raw_content: Original response text
            - model: Model name used
            - usage: Token usage dict with prompt_tokens, completion_tokens, total_tokens
            - raw_response: Original API response object

        Raises:
            StructuredOutputError: If the response cannot be parsed into response_model
            RuntimeError: If the request fails
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """
        Return provider name.

        Returns:
            Provider name ('gemini', 'openai', 'mistral')
        """
        pass

    @staticmethod
    def _attach_images(
        messages: List[Dict[str, Any]],
        attachments: Optional[List[ImageAttachment]],
        image_part
    ) -> List[Dict[str, Any]]:
        """
        Turn the last user message into a multi-part message carrying the images.

        image_part maps an ImageAttachment to the provider's content part format.
        """
        if not attachments:
            return messages

        messages = [dict(message) for message in messages]
        for message in reversed(messages):
            if message.get("role") == "user":
                parts = [image_part(attachment) for attachment in attachments]
                parts.append({"type": "text", "text": message["content"]})
                message["content"] = parts
                break
        return messages


class GeminiProvider(LLMProvider):
    """Google Gemini provider implementation"""

    AVAILABLE_MODELS = [
        "gemini-2.5-flash",
        "gemini-2.5-pro",
        "gemini-2.0-flash",
    ]

    def __init__(self, api_key: Optional[str] = None):
        """Initialize Gemini provider with API key"""
        from google import genai

        self.api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_AI_API_KEY")
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY not found in environment variables")

        self.client = genai.Client(api_key=self.api_key)
        logger.info("Initialized Gemini provider")

    @staticmethod
    def _build_contents(
        messages: List[Dict[str, Any]],
        attachments: Optional[List[ImageAttachment]] = None
    ):
        """Split chat messages into a system instruction and Gemini contents"""
        from google.genai import types

        system_parts = [m["content"] for m in messages if m.get("role") == "system"]
        contents = []

        for attachment in attachments or []:
            contents.append(types.Part.from_bytes(data=attachment.data, mime_type=attachment.mime_type))

        for message in messages:
            if message.get("role") != "system":
                contents.append(message["content"])

        system_instruction = "\n\n".join(system_parts) if system_parts else None
        return system_instruction, contents

    @staticmethod
    def _usage(response) -> Dict[str, int]:
        usage = getattr(response, "usage_metadata", None)
        return {
            "prompt_tokens": getattr(usage, "prompt_token_count", 0) or 0,
            "completion_tokens": getattr(usage, "candidates_token_count", 0) or 0,
            "total_tokens": getattr(usage, "total_token_count", 0) or 0,
        }

    def create_chat_completion(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
        response_format: Optional[Dict] = None,
        timeout: float = 30.0,
        **kwargs
    ) -> Dict[str, Any]:
        """Create chat completion using Gemini generate_content"""
        attachments = kwargs.pop("attachments", None)
        system_instruction, contents = self._build_contents(messages, attachments)

        config = {
            "temperature": temperature,
            "max_output_tokens": max_tokens,
            "http_options": {"timeout": int(timeout * 1000)},
            **kwargs
        }
        if system_instruction:
            config["system_instruction"] = system_instruction

        if response_format:
            config["response_mime_type"] = "application/json"
            if response_format.get("type") == "json_schema":
                config["response_json_schema"] = response_format["json_schema"]

        response = self.client.models.generate_content(
            model=model,
            contents=contents,
            config=config,
        )

        return {
            "content": response.text,
            "model": model,
            "usage": self._usage(response),
            "raw_response": response
        }

    def get_available_models(self) -> List[str]:
        """Return list of available Gemini models"""
        return self.AVAILABLE_MODELS

    def supports_structured_output(self, model: str) -> bool:
        """All Gemini 2.x models accept a JSON response schema"""
        return model.startswith("gemini-2")

    def get_provider_name(self) -> str:
        """Return provider name"""
        return "gemini"

    def create_structured_completion(
        self,
        messages: List[Dict[str, Any]],
        response_model: Type[BaseModel],
        model: str,
        attachments: Optional[List[ImageAttachment]] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout: float = 30.0,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Create structured completion using Gemini JSON mode with the model's JSON schema.
        """
        logger.debug(f"Attempting structured completion with Gemini model {model}")

        response_format = {"type": "json_object"}
        if self.supports_structured_output(model):
            response_format = {"type": "json_schema", "json_schema": response_model.model_json_schema()}

        response = self.create_chat_completion(
            messages=messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format=response_format,
            timeout=timeout,
            attachments=attachments,
            **kwargs
        )

        parsed_object = parse_structured_content(response["content"], response_model)

        logger.info(f"Structured completion successful: {model}, tokens={response['usage']['total_tokens']}")
        return {
            "parsed_object": parsed_object,
            "raw_content": response["content"],
            "model": response["model"],
            "usage": response["usage"],
            "raw_response": response["raw_response"]
        }


class OpenAIProvider(LLMProvider):
    """OpenAI API provider implementation"""

    # Models that support structured outputs (JSON schema)
    STRUCTURED_OUTPUT_MODELS = {
        "gpt-4o-mini",
        "gpt-4o-2024-08-06",
        "gpt-4o-2024-11-20",
        "gpt-4o",
    }

    AVAILABLE_MODELS = [
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4-turbo",
    ]

    def __init__(self, api_key: Optional[str] = None):
        """Initialize OpenAI provider with API key"""
        from openai import OpenAI

        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY not found in environment variables")

        self.client = OpenAI(api_key=self.api_key)
        logger.info("Initialized OpenAI provider")

    @staticmethod
    def _image_part(attachment: ImageAttachment) -> Dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": attachment.to_data_url()}}

    def create_chat_completion(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
        response_format: Optional[Dict] = None,
        timeout: float = 30.0,
        **kwargs
    ) -> Dict[str, Any]:
        """Create chat completion using OpenAI API"""

        # Build API parameters
        api_params = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": timeout,
            **kwargs  # Allow additional OpenAI-specific params
        }

        # Add response format if provided
        if response_format:
            api_params["response_format"] = response_format

        # Make API call
        response = self.client.chat.completions.create(**api_params)

        # Normalize response
        return {
            "content": response.choices[0].message.content,
            "model": response.model,
            "usage": {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            },
            "raw_response": response
        }

    def get_available_models(self) -> List[str]:
        """Return list of available OpenAI models"""
        return self.AVAILABLE_MODELS

    def supports_structured_output(self, model: str) -> bool:
        """Check if model supports JSON schema structured outputs"""
        return model in self.STRUCTURED_OUTPUT_MODELS

    def get_provider_name(self) -> str:
        """Return provider name"""
        return "openai"

    def create_structured_completion(
        self,
        messages: List[Dict[str, Any]],
        response_model: Type[BaseModel],
        model: str,
        attachments: Optional[List[ImageAttachment]] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout: float = 30.0,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Create structured completion using OpenAI's .parse() method.

        Uses beta.chat.completions.parse() for models that support structured outputs,
        with automatic fallback to manual JSON parsing if structured output fails.
        """
        messages = self._attach_images(messages, attachments, self._image_part)

        try:
            logger.debug(f"Attempting structured completion with OpenAI model {model}")

            response = self.client.beta.chat.completions.parse(
                model=model,
                messages=messages,
                response_format=response_model,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout,
                **kwargs
            )

            parsed_object = response.choices[0].message.parsed
            if parsed_object is None:
                raise ValueError("Structured output returned no parsed object")

            result = {
                "parsed_object": parsed_object,
                "raw_content": response.choices[0].message.content,
                "model": response.model,
                "usage": {
                    "prompt_tokens": response.usage.prompt_tokens,
                    "completion_tokens": response.usage.completion_tokens,
                    "total_tokens": response.usage.total_tokens,
                },
                "raw_response": response
            }

            logger.info(f"Structured completion successful: {response.model}, tokens={response.usage.total_tokens}")
            return result

        except Exception as e:
            logger.warning(f"Structured output failed, falling back to manual JSON parsing: {e}")

        try:
            # Fallback: use regular chat completion with JSON mode
            response = self.create_chat_completion(
                messages=messages,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
                timeout=timeout,
                **kwargs
            )
        except Exception as fallback_err:
            logger.error(f"Fallback completion failed: {fallback_err}")
            raise RuntimeError(f"Structured completion failed and fallback also failed: {fallback_err}")

        parsed_object = parse_structured_content(response["content"], response_model)

        logger.info(f"Fallback parsing successful: {response['model']}")
        return {
            "parsed_object": parsed_object,
            "raw_content": response["content"],
            "model": response["model"],
            "usage": response["usage"],
            "raw_response": response.get("raw_response")
        }


class MistralProvider(LLMProvider):
    """Mistral AI provider implementation"""

    AVAILABLE_MODELS = [
        "mistral-small-latest",
        "mistral-medium-latest",
        "pixtral-large-latest",
        "pixtral-12b-latest",
    ]

    # Mistral supports JSON mode but not full JSON schema yet
    JSON_MODE_MODELS = {
        "mistral-small-latest",
        "mistral-medium-latest",
        "pixtral-large-latest",
        "pixtral-12b-latest",
    }

    def __init__(self, api_key: Optional[str] = None):
        """Initialize Mistral provider with API key"""
        from mistralai import Mistral

        self.api_key = api_key or os.getenv("MISTRAL_API_KEY")
        if not self.api_key:
            raise ValueError("MISTRAL_API_KEY not found in environment variables")

        self.client = Mistral(api_key=self.api_key)
        logger.info("Initialized Mistral provider")

    @staticmethod
    def _image_part(attachment: ImageAttachment) -> Dict[str, Any]:
        return {"type": "image_url", "image_url": attachment.to_data_url()}

    def create_chat_completion(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
        response_format: Optional[Dict] = None,
        timeout: float = 30.0,
        **kwargs
    ) -> Dict[str, Any]:
        """Create chat completion using Mistral API"""

        # Build API parameters
        api_params = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout_ms": int(timeout * 1000),
            **kwargs  # Allow additional Mistral-specific params
        }

        # Handle response format
        if response_format:
            if model in self.JSON_MODE_MODELS:
                api_params["response_format"] = {"type": "json_object"}
            else:
                logger.warning(f"Model {model} may not support JSON mode")

        # Make API call (Mistral SDK uses chat.complete())
        response = self.client.chat.complete(**api_params)

        # Normalize response
        return {
            "content": response.choices[0].message.content,
            "model": response.model,
            "usage": {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            },
            "raw_response": response
        }

    def get_available_models(self) -> List[str]:
        """Return list of available Mistral models"""
        return self.AVAILABLE_MODELS

    def supports_structured_output(self, model: str) -> bool:
        """Mistral doesn't support full JSON schema yet, only JSON mode"""
        return False

    def get_provider_name(self) -> str:
        """Return provider name"""
        return "mistral"

    def create_structured_completion(
        self,
        messages: List[Dict[str, Any]],
        response_model: Type[BaseModel],
        model: str,
        attachments: Optional[List[ImageAttachment]] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout: float = 30.0,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Create structured completion using Mistral JSON mode with manual parsing.
        """
        messages = self._attach_images(messages, attachments, self._image_part)

        logger.debug(f"Attempting structured completion with Mistral model {model}")

        try:
            response = self.create_chat_completion(
                messages=messages,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
                timeout=timeout,
                **kwargs
            )
        except Exception as e:
            logger.error(f"Mistral completion failed: {e}")
            raise RuntimeError(f"Structured completion failed: {e}")

        parsed_object = parse_structured_content(response["content"], response_model)

        logger.info(f"Structured completion successful: {response['model']}, tokens={response['usage']['total_tokens']}")
        return {
            "parsed_object": parsed_object,
            "raw_content": response["content"],
            "model": response["model"],
            "usage": response["usage"],
            "raw_response": response.get("raw_response")
        }


class LLMProviderFactory:
    """Factory class for creating LLM provider instances"""

    # Default models per provider (all accept image input)
    DEFAULT_MODELS = {
        "gemini": "gemini-2.5-flash",
        "openai": "gpt-4o-mini",
        "mistral": "pixtral-12b-latest",
    }

    PROVIDERS = {
        "gemini": GeminiProvider,
        "openai": OpenAIProvider,
        "mistral": MistralProvider,
    }

    @staticmethod
    def create_provider(provider_name: Optional[str] = None) -> LLMProvider:
        """
        Create an LLM provider instance based on configuration.

        Args:
            provider_name: Provider to use ("gemini", "openai", "mistral").
                         If None, reads from LLM_PROVIDER env var (default: "gemini")

        Returns:
            LLMProvider instance

        Raises:
            ValueError: If provider is not supported or API key is missing
        """
        if provider_name is None:
            provider_name = os.getenv("LLM_PROVIDER", "gemini")
        provider_name = provider_name.lower()

        logger.info(f"Creating LLM provider: {provider_name}")

        provider_class = LLMProviderFactory.PROVIDERS.get(provider_name)
        if provider_class is None:
            raise ValueError(
                f"Unsupported LLM provider: {provider_name}. "
                f"Supported providers: {', '.join(LLMProviderFactory.PROVIDERS)}"
            )
        return provider_class()

    @staticmethod
    def get_default_model(provider_name: Optional[str] = None) -> str:
        """
        Get the model to use for a provider.

        LLM_MODEL overrides the per-provider default.

        Args:
            provider_name: Provider name. If None, uses LLM_PROVIDER env var

        Returns:
            Model name
        """
        override = os.getenv("LLM_MODEL")
        if override:
            return override

        if provider_name is None:
            provider_name = os.getenv("LLM_PROVIDER", "gemini")

        return LLMProviderFactory.DEFAULT_MODELS.get(provider_name.lower(), "gemini-2.5-flash")


def get_llm_client(provider_name: Optional[str] = None) -> LLMProvider:
    """
    Get an LLM provider client instance.

    Convenience wrapper around LLMProviderFactory.create_provider()
    for easier imports in service files.

    Args:
        provider_name: Provider to use ("gemini", "openai", "mistral")

    Returns:
        LLMProvider instance
    """
    return LLMProviderFactory.create_provider(provider_name)
