from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..app.chain_editor import LookupChainEditor
from ..app.file_registry import FileRegistry, UploadedFile
from ..app.lookup_chain import FIELD_NAMES, chain_from_list

router = APIRouter(prefix="/api/lookup-chain", tags=["lookup-chain"])
logger = logging.getLogger(__name__)


class ChainBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lookup_chain: List[Dict[str, Any]] = Field(default_factory=list, alias="lookupChain")
    base_fields: List[str] = Field(default_factory=list, alias="baseFields")
    file_columns: Dict[str, List[str]] = Field(default_factory=dict, alias="fileColumns")


class RemoveStepBody(ChainBody):
    step_id: int = Field(..., alias="stepId")


class SetFieldBody(ChainBody):
    step_id: int = Field(..., alias="stepId")
    field: str
    value: Any = None


def _editor(body: ChainBody) -> LookupChainEditor:
    registry = FileRegistry(
        lookup={name: UploadedFile(filename=name, columns=tuple(cols)) for name, cols in body.file_columns.items()}
    )
    try:
        chain = chain_from_list(body.lookup_chain)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid lookup chain: {exc}") from exc
    return LookupChainEditor(registry, chain, body.base_fields)


def _state(editor: LookupChainEditor) -> Dict[str, Any]:
    editor.revalidate()
    payload = editor.to_dict()
    payload["targetColumns"] = [editor.target_columns(step.step_id) for step in editor.chain]
    return payload


@router.post("/state")
def chain_state(body: ChainBody) -> Dict[str, Any]:
    """Derived view of a chain: errors, source field choices and previews."""
    return _state(_editor(body))


@router.post("/steps")
def add_step(body: ChainBody) -> Dict[str, Any]:
    editor = _editor(body)
    editor.add_step()
    return _state(editor)


@router.post("/steps/remove")
def remove_step(body: RemoveStepBody) -> Dict[str, Any]:
    editor = _editor(body)
    editor.remove_step(body.step_id)
    return _state(editor)


@router.post("/steps/field")
def set_step_field(body: SetFieldBody) -> Dict[str, Any]:
    if body.field not in FIELD_NAMES or body.field == "stepId":
        logger.warning("Rejected update to lookup step field %r", body.field)
        raise HTTPException(status_code=400, detail=f"Unknown lookup step field: {body.field}")
    editor = _editor(body)
    editor.set_field(body.step_id, body.field, body.value)
    return _state(editor)
