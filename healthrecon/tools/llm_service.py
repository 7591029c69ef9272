"""
LLM Service — completion service backed by pydantic-ai.

One OpenAI chat model (or a FunctionModel in mock mode / tests) behind a
small API: complete() for text, generate_json() for a parsed JSON object.
Every failure surfaces as CompletionError so callers can isolate it per
document or per account.
"""

import logging
from typing import Any, Dict, Optional

from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.function import FunctionModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from ..config import Settings, get_settings
from ..errors import CompletionError, ServiceMisconfigured
from . import json_repair

logger = logging.getLogger(__name__)

JSON_INSTRUCTION = "\nYou must respond with a single valid JSON object only. No markdown, no explanation."


class LLMService:
    """Completion service used by the classifier, processor and briefing generator."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        mock_mode: bool = False,
        model: Optional[Model] = None,
    ):
        self.settings = settings or get_settings()
        self.mock_mode = mock_mode or self.settings.mock_mode
        self._model = model
        # Agents cached by system prompt
        self._agent_cache: Dict[str, Agent] = {}
        if model is not None:
            logger.info("LLM: injected model")
        elif self.mock_mode:
            logger.info("LLM: MOCK mode")
        else:
            logger.info(f"LLM: OpenAI/{self.settings.openai_model}")

    def _get_model(self) -> Model:
        if self._model is not None:
            return self._model
        if self.mock_mode:
            from . import mock_responses
            self._model = FunctionModel(mock_responses.get_mock_response_for_function_model)
        elif not self.settings.openai_api_key:
            raise ServiceMisconfigured("Completion service", "OPENAI_API_KEY")
        else:
            self._model = OpenAIChatModel(
                model_name=self.settings.openai_model,
                provider=OpenAIProvider(
                    base_url=self.settings.openai_base_url,
                    api_key=self.settings.openai_api_key,
                ),
            )
        return self._model

    def _get_or_create_agent(self, system_prompt: str) -> Agent:
        if system_prompt not in self._agent_cache:
            self._agent_cache[system_prompt] = Agent(
                self._get_model(),
                output_type=str,
                system_prompt=system_prompt,
            )
        return self._agent_cache[system_prompt]

    async def complete(
        self,
        prompt: str,
        format: str = "text",
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Return the model's text for a prompt.

        format="json" appends a JSON-only instruction to the system prompt;
        the caller is responsible for parsing.
        """
        sys_prompt = system_prompt or ""
        if format == "json":
            sys_prompt = (sys_prompt + JSON_INSTRUCTION).strip()
        agent = self._get_or_create_agent(sys_prompt)
        temp = self.settings.llm_temperature if temperature is None else temperature
        try:
            result = await agent.run(prompt, model_settings=ModelSettings(temperature=temp))
        except Exception as e:
            logger.warning(f"Completion failed: {e}")
            raise CompletionError(f"Completion failed: {e}") from e

        if not result.output or not result.output.strip():
            raise CompletionError("Empty completion")
        return result.output

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        return await self.complete(prompt, format="text", system_prompt=system_prompt)

    async def generate_json(self, prompt: str, system_prompt: Optional[str] = None) -> Dict[str, Any]:
        """Complete in JSON mode and return the parsed object (CompletionError otherwise)."""
        text = await self.complete(prompt, format="json", system_prompt=system_prompt)
        return json_repair.parse_json_object(text)
