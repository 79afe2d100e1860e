from __future__ import annotations

from fastapi import APIRouter

from . import lookup_chain

router = APIRouter()
router.include_router(lookup_chain.router)
