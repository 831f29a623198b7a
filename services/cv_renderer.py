"""
Renders the public CV page.
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

REPO_ROOT = Path(__file__).resolve().parent.parent
TEMPLATE_DIR = REPO_ROOT / "templates"
TEMPLATE_NAME = "cv_public.html"

_env: Optional[Environment] = None


def _get_env() -> Environment:
    global _env
    if _env is None:
        _env = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _env


def split_list(value: Optional[str], separator: str = ",") -> List[str]:
    """Split a free-text list, dropping blanks."""
    if not value or not isinstance(value, str):
        return []
    return [item.strip() for item in value.split(separator) if item.strip()]


def build_context(cv_data: Dict[str, Any]) -> Dict[str, Any]:
    experiences = []
    for exp in cv_data.get("experiences") or []:
        experiences.append({
            "role": exp.get("role", ""),
            "company": exp.get("company", ""),
            "dates": exp.get("dates", ""),
            "responsibilities": split_list(exp.get("responsibilities"), "\n"),
        })
    return {
        "cv": cv_data,
        "skills": split_list(cv_data.get("skills")),
        "tools": split_list(cv_data.get("tools")),
        "experiences": experiences,
        "education": cv_data.get("education") or [],
    }


def render_public_cv(data: str) -> str:
    """
    Render a stored CV (JSON text) as a standalone HTML page.

    Raises:
        ValueError: If the stored data is not a JSON object
    """
    cv_data = json.loads(data or "{}")
    if not isinstance(cv_data, dict):
        raise ValueError("CV data must be a JSON object")
    return _get_env().get_template(TEMPLATE_NAME).render(**build_context(cv_data))
