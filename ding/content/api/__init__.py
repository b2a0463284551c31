"""FastAPI routers for the content domain."""

from __future__ import annotations

from fastapi import APIRouter

from ding.content.api import items, labels

router = APIRouter()

router.include_router(items.router)
router.include_router(labels.router)

__all__ = ["router"]
