"""
AI Service - CV writing suggestions through an OpenAI-compatible gateway
"""
import asyncio
import json
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from config.settings import settings

logger = logging.getLogger(__name__)

PROVIDER = "blackbox"
SYSTEM_PROMPT = (
    "Eres un experto en recursos humanos y redacción de CVs profesionales. "
    "Ayudas a optimizar CVs para que sean más efectivos y atractivos para reclutadores. "
    "Responde en español de forma clara y concisa."
)
TEMPERATURE = 0.7
MAX_TOKENS = 2000


class AIServiceError(Exception):
    """Raised when the gateway call fails or returns nothing usable"""


class UnknownModelError(AIServiceError):
    """Raised for a model id that is not in the catalog"""


@dataclass
class AISuggestion:
    provider: str
    model: str
    suggestion: str
    usage: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        return asdict(self)


class AIService:
    """Service class for AI suggestion business logic"""

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self.api_key = settings.ai_api_key
        self.models = dict(settings.ai_models)
        self.default_model = settings.ai_model
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self._client or self.api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=settings.ai_base_url)
        return self._client

    def available_models(self) -> List[dict]:
        """Catalog entries as {id, name, default}; empty when no key is configured."""
        if not self.is_configured:
            return []
        return [
            {"id": model_id, "name": name, "default": model_id == self.default_model}
            for model_id, name in self.models.items()
        ]

    def resolve_model(self, model: Optional[str]) -> str:
        model = model or self.default_model
        if model not in self.models:
            raise UnknownModelError(f"Modelo no disponible: {model}")
        return model

    @staticmethod
    def build_messages(prompt: str, cv_data: Any) -> list:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"{prompt}\n\nDatos del CV actual:\n{json.dumps(cv_data, indent=2, ensure_ascii=False)}",
            },
        ]

    async def optimize(self, prompt: str, cv_data: Any, model: Optional[str] = None) -> AISuggestion:
        """
        Ask the gateway for a suggestion on the given CV.

        Args:
            prompt: What the user wants improved
            cv_data: The CV payload as edited by the client
            model: Catalog model id (defaults to AI_MODEL)

        Returns:
            AISuggestion with the text, the model that produced it and token usage

        Raises:
            AIServiceError: If the gateway is not configured, the model is unknown or the call fails
        """
        if not self.is_configured:
            raise AIServiceError("AI_API_KEY is not set")
        model = self.resolve_model(model)

        try:
            response = await self._get_client().chat.completions.create(
                model=model,
                messages=self.build_messages(prompt, cv_data),
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
                stream=False,
            )
        except OpenAIError as e:
            logger.error(f"Error calling AI gateway with {model}: {e}")
            raise AIServiceError(str(e)) from e

        if not response.choices or not response.choices[0].message.content:
            raise AIServiceError("Empty response from AI gateway")
        return AISuggestion(
            provider=PROVIDER,
            model=model,
            suggestion=response.choices[0].message.content.strip(),
            usage=response.usage.model_dump(exclude_none=True) if response.usage is not None else None,
        )

    async def compare(self, prompt: str, cv_data: Any, models: List[str]) -> List[dict]:
        """
        Run the same request against several models concurrently.

        Each entry is {success, provider, model, suggestion, usage} or
        {success: False, provider, model, error}; one failing model does not
        affect the others.

        Raises:
            AIServiceError: If no models are given
        """
        if not models:
            raise AIServiceError("Se requiere al menos un modelo")

        outcomes = await asyncio.gather(
            *(self.optimize(prompt, cv_data, model) for model in models),
            return_exceptions=True,
        )
        results = []
        for model, outcome in zip(models, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"Comparison with {model} failed: {outcome}")
                results.append({"success": False, "provider": PROVIDER, "model": model, "error": str(outcome)})
            else:
                results.append({"success": True, **outcome.to_dict()})
        return results
