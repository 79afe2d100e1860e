from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .lookup_chain import chain_errors, chain_from_list, is_chain_complete


VersionStatus = Literal["Current", "Previous", "Deprecated"]

DEFAULT_GLOBAL_VARIABLES: List[Dict[str, str]] = [
    {"name": "RTAMT", "description": "Row total amount", "dataType": "Currency"},
    {"name": "ATAMT", "description": "Agent total amount", "dataType": "Currency"},
]

ADJUSTMENT_REQUIRED_FIELDS = ("kpiName", "conditionField", "adjustFrom", "adjustWhat")


class ConfigurationError(ValueError):
    """Raised when a configuration document or its data section is malformed."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class BaseDataMapping(_CamelModel):
    agent_field: str = ""
    txn_id_field: str = ""
    txn_date_field: str = ""
    amount_field: str = ""

    def is_complete(self) -> bool:
        return all((self.agent_field, self.txn_id_field, self.txn_date_field, self.amount_field))


class GlobalVariable(_CamelModel):
    name: str
    description: str = ""
    data_type: Literal["Currency", "String", "Number", "Date"] = "Currency"


class LookupTable(_CamelModel):
    file: str = ""
    key_fields: List[str] = Field(default_factory=list)
    value_field: str = ""


class QualificationRule(_CamelModel):
    id: str = ""
    kpi_name: str = ""
    description: str = ""
    source_field: str = ""
    value_type: Literal["Fixed", "Lookup"] = "Fixed"
    evaluation_level: Literal["Per Record", "Per Agent"] = "Per Record"
    aggregation: Literal["N/A", "Sum", "Average", "Max", "Min"] = "N/A"
    lookup_table: Optional[LookupTable] = None


class AdjustmentRule(_CamelModel):
    id: str = ""
    kpi_name: str = ""
    description: str = ""
    condition_field: str = ""
    adjust_from: str = ""
    adjust_what: str = ""
    direction: Literal["Increase", "Decrease"] = "Increase"
    type: Literal["Percentage", "Absolute"] = "Percentage"
    value_type: Literal["Fixed", "Lookup"] = "Fixed"
    value: Optional[float] = None
    # Stored verbatim; the chain model owns its semantics.
    lookup_chain: Optional[List[Dict[str, Any]]] = None


class ExclusionRule(_CamelModel):
    id: str = ""
    kpi_name: str = ""
    description: str = ""
    source_field: str = ""
    status_update: str = ""


class CreditHierarchy(_CamelModel):
    id: str = ""
    manager_field: str = ""
    valid_from_field: str = ""
    valid_to_field: str = ""


class KPIConfigData(_CamelModel):
    base_data_mapping: BaseDataMapping = Field(default_factory=BaseDataMapping)
    global_variables: List[GlobalVariable] = Field(
        default_factory=lambda: [GlobalVariable(**item) for item in DEFAULT_GLOBAL_VARIABLES]
    )
    qualification_rules: List[QualificationRule] = Field(default_factory=list)
    adjustment_rules: List[AdjustmentRule] = Field(default_factory=list)
    exclusion_rules: List[ExclusionRule] = Field(default_factory=list)
    credit_hierarchy: CreditHierarchy = Field(default_factory=CreditHierarchy)
    uploaded_files: Optional[Dict[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_config_data(data: Optional[Mapping[str, Any]]) -> KPIConfigData:
    try:
        return KPIConfigData.model_validate(dict(data or {}))
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ConfigurationError(f"Invalid configuration data: {first.get('msg', exc)}", field) from exc


def adjustment_rule_errors(rule: AdjustmentRule) -> Dict[str, str]:
    payload = rule.model_dump(by_alias=True)
    errors: Dict[str, str] = {}
    for field in ADJUSTMENT_REQUIRED_FIELDS:
        if not payload.get(field):
            errors[field] = f"{field} is required"
    if rule.value_type == "Lookup":
        try:
            chain = chain_from_list(rule.lookup_chain)
        except (TypeError, ValueError):
            errors["lookupChain"] = "Lookup chain is invalid"
            return errors
        if not is_chain_complete(chain):
            errors["lookupChain"] = "Lookup chain is incomplete"
        elif chain_errors(chain):
            errors["lookupChain"] = "Lookup chain has invalid result variables"
    return errors


def save_blockers(case_file_id: Optional[str], data: KPIConfigData) -> List[str]:
    """Human readable reasons a configuration cannot be saved yet."""
    problems: List[str] = []
    if not (case_file_id or "").strip():
        problems.append("Enter a KPI identifier")
    files = data.uploaded_files or {}
    if not files.get("base"):
        problems.append("Upload a base data file")
    if not data.base_data_mapping.is_complete():
        problems.append("Complete all Base Data Mapping fields")
    if not data.qualification_rules:
        problems.append("Define at least one Qualification KPI")
    for rule in data.adjustment_rules:
        errors = adjustment_rule_errors(rule)
        if errors:
            label = rule.kpi_name or rule.id or "unnamed"
            problems.append(f"Fix adjustment rule '{label}': {', '.join(errors.values())}")
    return problems
