"""
AI Router - CV writing suggestions for users with an active trial or subscription
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from auth import get_current_user_id, require_active_subscription
from backend.utils.responses import success_response, error_response
from config import settings
from services.ai_service import AIService, AIServiceError
from services.subscription_service import AccessDecision
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

ai_router = APIRouter(prefix="/api/ai", tags=["ai"])

NOT_CONFIGURED_MESSAGE = "El asistente de IA no está configurado"


def _check_model(model: str) -> str:
    if model not in settings.ai_models:
        raise ValueError(f"Modelo inválido. Opciones: {', '.join(settings.ai_models)}")
    return model


class OptimizeRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    cvData: Dict[str, Any] = Field(default_factory=dict)
    model: Optional[str] = None

    @field_validator("model")
    @classmethod
    def model_in_catalog(cls, value: Optional[str]) -> Optional[str]:
        return _check_model(value) if value is not None else None


class CompareRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    cvData: Dict[str, Any] = Field(default_factory=dict)
    models: List[str] = Field(..., min_length=1)

    @field_validator("models")
    @classmethod
    def models_in_catalog(cls, value: List[str]) -> List[str]:
        return [_check_model(model) for model in value]


def get_ai_service() -> AIService:
    return AIService()


@ai_router.get("/models")
async def list_models(
    user_id: str = Depends(get_current_user_id),
    ai_service: AIService = Depends(get_ai_service),
):
    """Models the caller can pick from (empty when the gateway has no key)"""
    return success_response(data=ai_service.available_models())


@ai_router.post("/optimize")
async def optimize_cv(
    request: OptimizeRequest,
    user_id: str = Depends(get_current_user_id),
    decision: AccessDecision = Depends(require_active_subscription),
    ai_service: AIService = Depends(get_ai_service),
):
    """Forward the prompt and CV to the AI gateway and return its suggestion"""
    if not ai_service.is_configured:
        return error_response("ai_not_configured", status=503, message=NOT_CONFIGURED_MESSAGE)

    try:
        result = await ai_service.optimize(request.prompt, request.cvData, request.model)
    except AIServiceError as e:
        log_endpoint_event("/api/ai/optimize", user_id, "error", {"error": str(e)})
        return error_response(
            "ai_error",
            status=500,
            message="Error al procesar la solicitud con IA",
            data={"details": str(e)},
        )

    log_endpoint_event("/api/ai/optimize", user_id, "success", {"status": decision.status, "model": result.model})
    return success_response(data=result.to_dict())


@ai_router.post("/compare")
async def compare_models(
    request: CompareRequest,
    user_id: str = Depends(get_current_user_id),
    decision: AccessDecision = Depends(require_active_subscription),
    ai_service: AIService = Depends(get_ai_service),
):
    """Ask several models for a suggestion on the same CV"""
    if not ai_service.is_configured:
        return error_response("ai_not_configured", status=503, message=NOT_CONFIGURED_MESSAGE)

    results = await ai_service.compare(request.prompt, request.cvData, request.models)
    log_endpoint_event(
        "/api/ai/compare",
        user_id,
        "success",
        {"models": len(results), "failed": sum(1 for r in results if not r["success"])},
    )
    return success_response(data={"results": results})
