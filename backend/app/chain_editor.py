from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from . import lookup_chain as lc
from .file_registry import FileRegistry
from .lookup_chain import Chain, LookupStep


class LookupChainEditor:
    """Editing session for one adjustment rule's lookup chain.

    Holds the chain value plus the error map the builder screen shows. Each
    mutation replaces ``chain`` with a new tuple. The error map changes when
    a result variable is edited, and is rebuilt from the renumbered chain
    when a step is removed.
    """

    def __init__(
        self,
        registry: FileRegistry,
        chain: Optional[Sequence[LookupStep]] = None,
        base_fields: Optional[Sequence[str]] = None,
    ) -> None:
        self.registry = registry
        self.base_fields: List[str] = list(base_fields if base_fields is not None else registry.base_fields)
        self.chain: Chain = tuple(chain or ())
        self.errors: Dict[int, Dict[str, str]] = {}

    def add_step(self) -> Chain:
        self.chain = lc.add_step(self.chain)
        return self.chain

    def remove_step(self, step_id: int) -> Chain:
        before = self.chain
        self.chain = lc.remove_step(self.chain, step_id, self.base_fields)
        if self.chain != before:
            # ids and result variables were all reassigned
            self.errors = lc.chain_errors(self.chain)
        return self.chain

    def set_field(self, step_id: int, field: str, value: Any) -> Chain:
        if field in ("resultVariable", "result_variable") and any(s.step_id == step_id for s in self.chain):
            message = lc.validate_result_variable(self.chain, str(value or ""), step_id)
            self.errors.setdefault(step_id, {})["resultVariable"] = message
        self.chain = lc.set_field(self.chain, step_id, field, value)
        return self.chain

    def revalidate(self) -> Dict[int, Dict[str, str]]:
        """Rebuild the error map from the whole chain, not just edited steps."""
        self.errors = lc.chain_errors(self.chain)
        return self.errors

    def available_source_fields(self, index: int) -> List[str]:
        return lc.available_source_fields(self.chain, index, self.base_fields)

    def target_columns(self, step_id: int) -> List[str]:
        for step in self.chain:
            if step.step_id == step_id:
                return self.registry.columns_for(step.target_file) if step.target_file else []
        return []

    @property
    def is_valid(self) -> bool:
        return not any(message for fields in self.errors.values() for message in fields.values())

    @property
    def is_complete(self) -> bool:
        return lc.is_chain_complete(self.chain)

    @property
    def can_finish(self) -> bool:
        return self.is_complete and self.is_valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lookupChain": lc.chain_to_list(self.chain),
            "errors": {str(k): v for k, v in self.errors.items() if any(v.values())},
            "availableSourceFields": [self.available_source_fields(i) for i in range(len(self.chain))],
            "previews": [lc.step_preview(step) for step in self.chain],
            "complete": self.is_complete,
            "valid": self.is_valid,
        }
