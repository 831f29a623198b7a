"""
Tests for the AI gateway client: model catalog, request shape, comparison
"""
import pytest
from openai import OpenAIError
from openai.types.chat import ChatCompletion

from config import settings
from services.ai_service import AIService, AIServiceError, UnknownModelError, SYSTEM_PROMPT


def completion(model, content):
    return ChatCompletion.model_validate({
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": model,
        "choices": [
            {"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": content}}
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    })


class StubCompletions:
    def __init__(self, failing_models=()):
        self.failing_models = set(failing_models)
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if kwargs["model"] in self.failing_models:
            raise OpenAIError("upstream timeout")
        return completion(kwargs["model"], f"  Sugerencia de {kwargs['model']}  ")


class StubClient:
    def __init__(self, failing_models=()):
        self.completions = StubCompletions(failing_models)
        self.chat = self


def test_available_models_requires_key():
    assert AIService().available_models() == []


def test_available_models_marks_default(monkeypatch):
    monkeypatch.setattr(settings, "ai_api_key", "test-key")

    models = AIService().available_models()

    assert len(models) == 3
    assert {"id": "blackboxai/openai/gpt-4o", "name": "GPT-4o", "default": True} in models
    assert sum(1 for m in models if m["default"]) == 1


@pytest.mark.asyncio
async def test_optimize_sends_cv_and_returns_usage():
    client = StubClient()
    service = AIService(client=client)

    result = await service.optimize("Mejora mi perfil", {"name": "José"}, "blackboxai/anthropic/claude-sonnet-3.5")

    request = client.completions.requests[0]
    assert request["model"] == "blackboxai/anthropic/claude-sonnet-3.5"
    assert request["temperature"] == 0.7
    assert request["max_tokens"] == 2000
    assert request["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert request["messages"][1]["content"].startswith("Mejora mi perfil\n\nDatos del CV actual:\n")
    assert '"name": "José"' in request["messages"][1]["content"]
    assert result.to_dict() == {
        "provider": "blackbox",
        "model": "blackboxai/anthropic/claude-sonnet-3.5",
        "suggestion": "Sugerencia de blackboxai/anthropic/claude-sonnet-3.5",
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


@pytest.mark.asyncio
async def test_optimize_defaults_and_rejects_unknown_model():
    service = AIService(client=StubClient())

    assert (await service.optimize("Mejora", {})).model == settings.ai_model
    with pytest.raises(UnknownModelError):
        await service.optimize("Mejora", {}, "gpt-2")


@pytest.mark.asyncio
async def test_optimize_wraps_gateway_errors():
    service = AIService(client=StubClient(failing_models={"blackboxai/openai/gpt-4o"}))

    with pytest.raises(AIServiceError, match="upstream timeout"):
        await service.optimize("Mejora", {})


@pytest.mark.asyncio
async def test_compare_keeps_order_and_isolates_failures():
    models = ["blackboxai/google/gemini-pro", "blackboxai/openai/gpt-4o", "desconocido"]
    service = AIService(client=StubClient(failing_models={"blackboxai/openai/gpt-4o"}))

    results = await service.compare("Mejora", {"name": "Ana"}, models)

    assert [r["model"] for r in results] == models
    assert [r["success"] for r in results] == [True, False, False]
    assert results[0]["suggestion"] == "Sugerencia de blackboxai/google/gemini-pro"
    assert results[1]["error"] == "upstream timeout"
    assert results[2]["error"] == "Modelo no disponible: desconocido"


@pytest.mark.asyncio
async def test_compare_needs_at_least_one_model():
    with pytest.raises(AIServiceError):
        await AIService(client=StubClient()).compare("Mejora", {}, [])
