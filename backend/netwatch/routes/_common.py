# netwatch/routes/_common.py
# ------------------------------------------------------------
# Shared helpers for route modules.
# Keeps route files small and consistent.
# ------------------------------------------------------------

from typing import Any, Dict, Iterable

from fastapi import Request
from pydantic import BaseModel

from ..services import Services


def get_services(request: Request) -> Services:
    """
    FastAPI dependency: the Services container built at startup.
    """
    return request.app.state.services


def items(objs: Iterable[BaseModel], **extra: Any) -> Dict[str, Any]:
    """
    Standard list envelope: {"items": [...], **extra}
    """
    return {"items": [o.model_dump(mode="json") for o in objs], **extra}
