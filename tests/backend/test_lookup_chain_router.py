from __future__ import annotations

import pytest

from backend.routers import lookup_chain as chain_router

BASE_FIELDS = ["AgentID", "Region"]
FILE_COLUMNS = {"rates": ["Agent", "Rate", "Tier"], "tiers": ["Tier", "Bonus"]}


def _body(chain, **extra):
    return {"lookupChain": chain, "baseFields": BASE_FIELDS, "fileColumns": FILE_COLUMNS, **extra}


def _add(chain):
    return chain_router.add_step(chain_router.ChainBody(**_body(chain)))


def _set(chain, step_id, field, value):
    body = chain_router.SetFieldBody(**_body(chain, stepId=step_id, field=field, value=value))
    return chain_router.set_step_field(body)


def test_add_step_to_empty_chain() -> None:
    state = _add([])
    assert state["lookupChain"] == [
        {
            "stepId": 1,
            "sourceFields": [],
            "targetFile": "",
            "targetKeyFields": [],
            "returnedFields": [],
            "resultVariable": "step1_result",
        }
    ]
    assert state["availableSourceFields"] == [BASE_FIELDS]
    assert state["complete"] is False
    assert state["valid"] is True


def test_building_a_two_step_chain() -> None:
    chain = _add([])["lookupChain"]
    chain = _set(chain, 1, "sourceFields", ["AgentID"])["lookupChain"]
    chain = _set(chain, 1, "targetFile", "rates")["lookupChain"]
    state = _set(chain, 1, "returnedFields", ["Tier"])
    assert state["targetColumns"] == [FILE_COLUMNS["rates"]]

    state = _add(state["lookupChain"])
    assert state["availableSourceFields"][1] == BASE_FIELDS + ["step1_result"]

    chain = state["lookupChain"]
    for field, value in (
        ("sourceFields", ["step1_result"]),
        ("targetFile", "tiers"),
        ("targetKeyFields", ["Tier"]),
        ("returnedFields", ["Bonus"]),
        ("finalResultField", "Bonus"),
        ("lookupApplicationMode", "Fixed"),
    ):
        state = _set(chain, 2, field, value)
        chain = state["lookupChain"]
    assert state["complete"] is True
    assert state["previews"][1].endswith("→ Final: Bonus")


def test_remove_step_renumbers_and_prunes() -> None:
    chain = _add(_add([])["lookupChain"])["lookupChain"]
    chain = _set(chain, 2, "sourceFields", ["step1_result", "Region"])["lookupChain"]
    body = chain_router.RemoveStepBody(**_body(chain, stepId=1))
    state = chain_router.remove_step(body)
    assert state["lookupChain"][0]["stepId"] == 1
    assert state["lookupChain"][0]["sourceFields"] == ["Region"]


def test_duplicate_result_variable_reported_in_state() -> None:
    chain = _add(_add([])["lookupChain"])["lookupChain"]
    state = _set(chain, 2, "resultVariable", "step1_result")
    assert state["lookupChain"][1]["resultVariable"] == "step1_result"
    assert state["errors"]["2"]["resultVariable"] == "Result variable name must be unique"
    assert state["valid"] is False


def test_chain_state_for_existing_chain() -> None:
    chain = _add(_add([])["lookupChain"])["lookupChain"]
    state = chain_router.chain_state(chain_router.ChainBody(**_body(chain)))
    assert [s["stepId"] for s in state["lookupChain"]] == [1, 2]
    assert state["targetColumns"] == [[], []]


def test_unknown_field_is_rejected() -> None:
    with pytest.raises(chain_router.HTTPException) as exc:
        _set(_add([])["lookupChain"], 1, "colour", "blue")
    assert exc.value.status_code == 400


def test_invalid_step_payload_is_rejected() -> None:
    with pytest.raises(chain_router.HTTPException) as exc:
        chain_router.chain_state(chain_router.ChainBody(**_body([{"stepId": "abc"}])))
    assert exc.value.status_code == 400

    with pytest.raises(chain_router.HTTPException) as exc:
        chain_router.chain_state(chain_router.ChainBody(**_body([{"stepId": 1, "sourceFields": 7}])))
    assert exc.value.status_code == 400


def test_non_list_value_for_list_field_leaves_chain_unchanged() -> None:
    chain = _set(_add([])["lookupChain"], 1, "sourceFields", ["AgentID"])["lookupChain"]
    state = _set(chain, 1, "sourceFields", 5)
    assert state["lookupChain"] == chain

    state = _set(chain, 1, "returnedFields", "Tier")
    assert state["lookupChain"][0]["returnedFields"] == ["Tier"]


def _route_methods(path: str) -> set[str]:
    methods: set[str] = set()
    for route in chain_router.router.routes:
        if getattr(route, "path", None) == path:
            methods.update(method.upper() for method in getattr(route, "methods", set()))
    return methods


def test_lookup_chain_routes_allow_expected_methods() -> None:
    for path in ("/state", "/steps", "/steps/remove", "/steps/field"):
        methods = _route_methods(f"/api/lookup-chain{path}")
        if not methods:
            pytest.fail(f"{path} route was not registered")
        assert {"POST"} <= methods
