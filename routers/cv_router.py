"""
CV Router - CRUD for the caller's CVs and the public CV page
"""
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user_id
from backend.utils.responses import success_response, error_response
from crud.cv import CVRepository
from database import get_db
from database_models import CV
from services.cv_renderer import render_public_cv

logger = logging.getLogger(__name__)

cv_router = APIRouter(prefix="/api", tags=["cvs"])
public_cv_router = APIRouter(tags=["public"])


class CVCreateRequest(BaseModel):
    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class CVUpdateRequest(BaseModel):
    name: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    is_public: bool = False


def serialize_cv(cv: CV) -> dict:
    return {
        "id": cv.id,
        "user_id": cv.user_id,
        "name": cv.name,
        "data": json.loads(cv.data or "{}"),
        "slug": cv.slug,
        "is_public": cv.is_public,
        "created_at": cv.created_at,
        "updated_at": cv.updated_at,
    }


@cv_router.get("/cvs")
async def list_cvs(user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db)):
    cvs = await CVRepository(db).list_for_user(user_id)
    return success_response(data=[serialize_cv(cv) for cv in cvs])


@cv_router.post("/cvs")
async def create_cv(
    request: CVCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    repo = CVRepository(db)
    if await repo.get_by_id(request.id):
        return error_response("cv_exists", status=409, message="El CV ya existe")
    cv = await repo.create_cv(request.id, user_id, request.name, request.data)
    return success_response(data={"id": cv.id, "slug": cv.slug})


@cv_router.put("/cvs/{cv_id}")
async def update_cv(
    cv_id: str,
    request: CVUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    repo = CVRepository(db)
    cv = await repo.get_owned(cv_id, user_id)
    if not cv:
        return error_response("cv_not_found", status=404, message="CV no encontrado o no autorizado")
    await repo.update_cv(cv, request.name, request.data, request.is_public)
    return success_response()


@cv_router.delete("/cvs/{cv_id}")
async def delete_cv(
    cv_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await CVRepository(db).delete_owned(cv_id, user_id)
    return success_response()


@cv_router.get("/cv-by-slug/{slug}")
async def get_cv_by_slug(
    slug: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    cv = await CVRepository(db).get_by_slug(slug)
    if not cv:
        return error_response("cv_not_found", status=404, message="CV no encontrado")
    return success_response(data=serialize_cv(cv))


@public_cv_router.get("/cv/{slug}", response_class=HTMLResponse)
async def public_cv_page(slug: str, db: AsyncSession = Depends(get_db)):
    """Public, shareable CV page. Only CVs marked public are served."""
    cv = await CVRepository(db).get_public_by_slug(slug)
    if not cv:
        return HTMLResponse("CV no encontrado o no público", status_code=404)
    try:
        html = render_public_cv(cv.data)
    except ValueError as e:
        logger.error(f"Error al cargar CV {slug}: {e}")
        return HTMLResponse("Error al cargar CV", status_code=500)
    return HTMLResponse(html, headers={"Cache-Control": "public, max-age=300"})
