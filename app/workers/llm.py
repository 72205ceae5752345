from __future__ import annotations

from typing import Any, List, Optional
from uuid import UUID

from pydantic_ai import Agent
from pydantic_ai.messages import (
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.litellm import LiteLLMProvider

from app.config import get_settings
from app.infra.logging_config import get_logger
from app.schemas.ai import Intent, IntentResult
from app.services.ai_context_service import AIContextService
from app.services.assistant_service import History

logger = get_logger("llm")

INTENT_HISTORY_TURNS = 5


def _history_to_message_list(history: History) -> List[Any]:
    """Convert list of {role, content} to pydantic_ai ModelMessage list for message_history."""
    out: List[Any] = []
    for item in history:
        role = item.get("role", "user")
        content = (item.get("content") or "").strip()
        if not content:
            continue
        if role == "user":
            out.append(ModelRequest(parts=[UserPromptPart(content=content)]))
        elif role == "assistant":
            out.append(ModelResponse(parts=[TextPart(content=content)]))
        elif role == "system":
            out.append(ModelRequest(parts=[SystemPromptPart(content=content)]))
    return out


def _message_list_with_system_prompt(system_prompt: str, history: History) -> List[Any]:
    """Build message_history with system prompt always first, then conversation history."""

    # https://github.com/pydantic/pydantic-ai/issues/4039
    # https://ai.pydantic.dev/agent/#system-prompts
    system_message = ModelRequest(parts=[SystemPromptPart(content=system_prompt)])
    return [system_message] + _history_to_message_list(history)


class LLMRunner:
    """Holds the model and the two agents; shared across turns."""

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
    ) -> None:
        provider = LiteLLMProvider(api_key=api_key, api_base=api_base)
        model = OpenAIChatModel(model_name, provider=provider)
        logger.info(f"Initializing LLM runner with model {model_name}")
        self._intent_agent = Agent(model, output_type=IntentResult)
        self._reply_agent = Agent(model)

    async def classify(
        self, system_prompt: str, message: str, history: History
    ) -> IntentResult:
        prompt = (
            "Analyze this message and provide intent, confidence, sentiment, "
            f"and a suggested response.\n\nMessage: {message}"
        )
        result = await self._intent_agent.run(
            prompt,
            message_history=_message_list_with_system_prompt(
                system_prompt, history[-INTENT_HISTORY_TURNS:]
            ),
        )
        return result.output

    async def reply(self, system_prompt: str, message: str, history: History) -> str:
        result = await self._reply_agent.run(
            message,
            message_history=_message_list_with_system_prompt(system_prompt, history),
        )
        return str(result.output)


class LLMAssistant:
    """Binds the shared runner to one database session for business context lookups."""

    def __init__(self, runner: LLMRunner, contexts: AIContextService) -> None:
        self._runner = runner
        self._contexts = contexts

    async def classify_intent(
        self, message: str, bot_id: UUID, history: History
    ) -> IntentResult:
        profile = self._contexts.get_profile(bot_id)
        return await self._runner.classify(
            self._contexts.build_intent_prompt(profile), message, history
        )

    async def generate_reply(
        self, message: str, intent: Intent, bot_id: UUID, history: History
    ) -> str:
        profile = self._contexts.get_profile(bot_id)
        return await self._runner.reply(
            self._contexts.build_reply_prompt(profile, intent), message, history
        )


def build_llm_runner_from_env() -> Optional[LLMRunner]:
    settings = get_settings()
    logger.info(
        "LLM runner config: model=%s, api_key=%s, api_base=%s",
        settings.llm_model,
        "set" if settings.litellm_api_key else "not set",
        settings.litellm_api_base or "(default)",
    )
    if not settings.litellm_api_key:
        logger.warning(
            "LITELLM_API_KEY is not set; free-form replies will use static fallbacks."
        )
        return None

    return LLMRunner(
        model_name=settings.llm_model,
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
    )
