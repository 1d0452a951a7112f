"""Chat model registry and helpers for reading structured answers out of LLM text.

Usage:
    from llm import get_chat_model, parse_structured

    model = get_chat_model()
    reply = await model.ainvoke(messages)
    outcome = parse_structured(message_text(reply), RepoAnalysis)
"""

import importlib
import json
import logging
import re
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

from langchain_core.language_models.chat_models import BaseChatModel
from pydantic import BaseModel, ValidationError

from config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

# provider -> (module, class, default model, pip extra)
_REGISTRY: dict[str, tuple[str, str, str, Optional[str]]] = {
    "ollama": ("langchain_ollama", "ChatOllama", "llama3.1", None),
    "anthropic": ("langchain_anthropic", "ChatAnthropic", "claude-sonnet-4-20250514", "anthropic"),
    "gemini": ("langchain_google_genai", "ChatGoogleGenerativeAI", "gemini-2.5-flash", "gemini"),
    "xai": ("langchain_xai", "ChatXAI", "grok-4-fast-reasoning", "xai"),
}


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)


def create_chat_model(
    provider: str,
    model: Optional[str] = None,
    temperature: float = 0.2,
) -> BaseChatModel:
    """Instantiate a LangChain chat model for the named provider.

    Raises:
        ValueError: If the provider name is unknown.
        ImportError: If the provider's integration package is not installed.
    """
    if provider not in _REGISTRY:
        valid = ", ".join(available_providers())
        raise ValueError(f"Unknown LLM provider '{provider}'. Available: {valid}")

    module_path, class_name, default_model, extra = _REGISTRY[provider]
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ImportError(
            f"The '{provider}' provider needs {module_path}. "
            f"Install it with: pip install 'gitsignal-backend[{extra}]'"
        ) from exc

    cls = getattr(module, class_name)
    logger.info("[LLM] Using %s model %s", provider, model or default_model)
    return cls(model=model or default_model, temperature=temperature)


_chat_model: Optional[BaseChatModel] = None


def get_chat_model() -> BaseChatModel:
    """Get or create the configured chat model instance."""
    global _chat_model
    if _chat_model is None:
        settings = get_settings()
        _chat_model = create_chat_model(
            settings.llm_provider,
            settings.llm_model,
            settings.llm_temperature,
        )
    return _chat_model


# ============================================================================
# Structured output
# ============================================================================

@dataclass(frozen=True)
class Parsed(Generic[T]):
    """The model's answer validated against the expected schema."""
    value: T


@dataclass(frozen=True)
class Fallback:
    """The model's answer could not be validated; the raw text is kept."""
    raw_text: str
    reason: str


ParseOutcome = Union[Parsed[T], Fallback]


def message_text(message) -> str:
    """Flatten a chat message's content (plain string or content blocks) to text."""
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def extract_json(text: str):
    """Pull the first JSON document out of LLM output. Returns None if there is none."""
    text = text.strip()
    fenced = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if fenced:
        text = fenced.group(1).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        for pattern in [r"(\{.*\})", r"(\[.*\])"]:
            match = re.search(pattern, text, re.DOTALL)
            if match:
                try:
                    return json.loads(match.group(1))
                except json.JSONDecodeError:
                    continue
    return None


def parse_structured(text: str, schema: type[T], defaults: Optional[dict] = None) -> ParseOutcome:
    """Validate LLM output against a pydantic schema without raising.

    ``defaults`` fills keys the model left out; keys it did produce win.
    """
    data = extract_json(text)
    if not isinstance(data, dict):
        return Fallback(raw_text=text, reason="no JSON object found in model output")
    try:
        return Parsed(schema.model_validate({**(defaults or {}), **data}))
    except ValidationError as exc:
        logger.warning("[LLM] %s failed validation: %s", schema.__name__, exc.error_count())
        return Fallback(raw_text=text, reason=str(exc))


def schema_prompt(schema: type[BaseModel]) -> str:
    """JSON schema text to paste into a prompt."""
    return json.dumps(schema.model_json_schema(), indent=2)
