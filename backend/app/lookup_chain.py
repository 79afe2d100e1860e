from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


APPLICATION_MODES: Tuple[str, ...] = ("Fixed", "Percentage")

RESULT_VARIABLE_REQUIRED = "Result variable name is required"
RESULT_VARIABLE_DUPLICATE = "Result variable name must be unique"

# Wire (camelCase) name -> dataclass attribute.
FIELD_NAMES: Dict[str, str] = {
    "stepId": "step_id",
    "sourceFields": "source_fields",
    "targetFile": "target_file",
    "targetKeyFields": "target_key_fields",
    "returnedFields": "returned_fields",
    "resultVariable": "result_variable",
    "finalResultField": "final_result_field",
    "lookupApplicationMode": "lookup_application_mode",
}
_LIST_FIELDS = {"source_fields", "target_key_fields", "returned_fields"}
_TERMINAL_FIELDS = {"final_result_field", "lookup_application_mode"}


def default_result_variable(step_id: int) -> str:
    return f"step{step_id}_result"


def _unique(values: Iterable[Any]) -> Tuple[str, ...]:
    seen: List[str] = []
    for value in values or ():
        text = str(value)
        if text not in seen:
            seen.append(text)
    return tuple(seen)


def _as_list(value: Any) -> Optional[List[Any]]:
    """A bare string names one field; None for values that are not field lists."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple)):
        return list(value)
    return None


@dataclass(frozen=True)
class LookupStep:
    step_id: int
    source_fields: Tuple[str, ...] = ()
    target_file: str = ""
    target_key_fields: Tuple[str, ...] = ()
    returned_fields: Tuple[str, ...] = ()
    result_variable: str = ""
    final_result_field: Optional[str] = None
    lookup_application_mode: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "stepId": self.step_id,
            "sourceFields": list(self.source_fields),
            "targetFile": self.target_file,
            "targetKeyFields": list(self.target_key_fields),
            "returnedFields": list(self.returned_fields),
            "resultVariable": self.result_variable,
        }
        if self.final_result_field:
            payload["finalResultField"] = self.final_result_field
        if self.lookup_application_mode:
            payload["lookupApplicationMode"] = self.lookup_application_mode
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LookupStep":
        step_id = int(data.get("stepId", data.get("step_id", 0)))

        def pick(wire: str) -> Any:
            return data.get(wire, data.get(FIELD_NAMES[wire]))

        def names(wire: str) -> Tuple[str, ...]:
            values = _as_list(pick(wire))
            if values is None:
                raise TypeError(f"{wire} must be a list of field names")
            return _unique(values)

        return cls(
            step_id=step_id,
            source_fields=names("sourceFields"),
            target_file=str(pick("targetFile") or ""),
            target_key_fields=names("targetKeyFields"),
            returned_fields=names("returnedFields"),
            result_variable=str(pick("resultVariable") or ""),
            final_result_field=pick("finalResultField") or None,
            lookup_application_mode=pick("lookupApplicationMode") or None,
        )


Chain = Tuple[LookupStep, ...]


def chain_from_list(items: Optional[Iterable[Mapping[str, Any]]]) -> Chain:
    return tuple(LookupStep.from_dict(item) for item in items or ())


def chain_to_list(chain: Sequence[LookupStep]) -> List[Dict[str, Any]]:
    return [step.to_dict() for step in chain]


def _index_of(chain: Sequence[LookupStep], step_id: int) -> Optional[int]:
    for index, step in enumerate(chain):
        if step.step_id == step_id:
            return index
    return None


def available_source_fields(
    chain: Sequence[LookupStep], index: int, base_fields: Sequence[str]
) -> List[str]:
    """Fields a step at ``index`` may consume: base fields, then the result
    variables of every earlier step in order (empty names skipped)."""
    fields = list(base_fields)
    if index <= 0:
        return fields
    fields.extend(step.result_variable for step in chain[:index] if step.result_variable)
    return fields


def add_step(chain: Sequence[LookupStep]) -> Chain:
    new_id = max((step.step_id for step in chain), default=0) + 1
    steps = list(chain)
    if steps:
        steps[-1] = replace(steps[-1], final_result_field=None, lookup_application_mode=None)
    steps.append(LookupStep(step_id=new_id, result_variable=default_result_variable(new_id)))
    return tuple(steps)


def remove_step(
    chain: Sequence[LookupStep], step_id: int, base_fields: Sequence[str] = ()
) -> Chain:
    """Drop a step, renumber the rest to 1..N and prune dangling source fields.

    Every remaining step gets its default result variable back, including
    steps that sat before the removed one and steps with custom names.
    """
    if _index_of(chain, step_id) is None:
        return tuple(chain)

    renumbered = [
        replace(step, step_id=position, result_variable=default_result_variable(position))
        for position, step in enumerate((s for s in chain if s.step_id != step_id), start=1)
    ]
    pruned: List[LookupStep] = []
    for index, step in enumerate(renumbered):
        universe = set(available_source_fields(renumbered, index, base_fields))
        kept = tuple(field for field in step.source_fields if field in universe)
        pruned.append(replace(step, source_fields=kept) if kept != step.source_fields else step)
    return tuple(pruned)


def _normalize_field(field: str) -> Optional[str]:
    if field in FIELD_NAMES:
        return FIELD_NAMES[field]
    if field in FIELD_NAMES.values():
        return field
    return None


def set_field(chain: Sequence[LookupStep], step_id: int, field: str, value: Any) -> Chain:
    index = _index_of(chain, step_id)
    if index is None:
        return tuple(chain)
    attr = _normalize_field(field)
    if attr is None or attr == "step_id":
        logger.warning("Ignoring update to unknown lookup step field %r", field)
        return tuple(chain)

    step = chain[index]
    is_last = index == len(chain) - 1
    updates: Dict[str, Any] = {}

    if attr in _LIST_FIELDS:
        values = _as_list(value)
        if values is None:
            logger.warning("Ignoring non-list value %r for %s of step %s", value, field, step_id)
            return tuple(chain)
        updates[attr] = _unique(values)
    elif attr in _TERMINAL_FIELDS:
        if not is_last:
            logger.warning("Step %s is not the last step; ignoring %s", step_id, field)
            return tuple(chain)
        text = str(value) if value else None
        if attr == "final_result_field" and text and text not in step.returned_fields:
            logger.warning("Final result field %r is not a returned field of step %s", text, step_id)
            return tuple(chain)
        if attr == "lookup_application_mode" and text and text not in APPLICATION_MODES:
            logger.warning("Unsupported lookup application mode %r", text)
            return tuple(chain)
        updates[attr] = text
    else:
        updates[attr] = "" if value is None else str(value)

    if attr == "target_file":
        updates.update(target_key_fields=(), returned_fields=(), final_result_field=None)

    if attr == "returned_fields" and step.final_result_field:
        if step.final_result_field not in updates[attr]:
            updates["final_result_field"] = None

    steps = list(chain)
    steps[index] = replace(step, **updates)
    return tuple(steps)


def validate_result_variable(chain: Sequence[LookupStep], value: str, step_id: int) -> str:
    if not (value or "").strip():
        return RESULT_VARIABLE_REQUIRED
    if any(step.step_id != step_id and step.result_variable == value for step in chain):
        return RESULT_VARIABLE_DUPLICATE
    return ""


def chain_errors(chain: Sequence[LookupStep]) -> Dict[int, Dict[str, str]]:
    errors: Dict[int, Dict[str, str]] = {}
    for step in chain:
        message = validate_result_variable(chain, step.result_variable, step.step_id)
        if message:
            errors.setdefault(step.step_id, {})["resultVariable"] = message
    return errors


def is_chain_complete(chain: Sequence[LookupStep]) -> bool:
    if not chain:
        return False
    last = chain[-1]
    return bool(
        last.source_fields
        and last.target_file
        and last.target_key_fields
        and last.returned_fields
        and last.final_result_field
        and last.lookup_application_mode
    )


def step_preview(step: LookupStep) -> Optional[str]:
    if not (
        step.source_fields
        and step.target_file
        and step.target_key_fields
        and step.returned_fields
        and step.result_variable
    ):
        return None
    keys = ", ".join(f"{field} = {{selected}}" for field in step.target_key_fields)
    final = f" → Final: {step.final_result_field}" if step.final_result_field else ""
    return (
        f"Source: {', '.join(step.source_fields)} → Lookup File: {step.target_file}"
        f" → Key: {keys} → Returns: {', '.join(step.returned_fields)}{final}"
    )
