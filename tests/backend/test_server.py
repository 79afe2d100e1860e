import pytest

from backend.server import create_app


def test_favicon_route_returns_empty_response() -> None:
    app = create_app()

    for route in app.routes:
        if getattr(route, "path", None) == "/favicon.ico":
            response = route.endpoint()
            assert response.status_code == 204
            assert response.body == b""
            break
    else:
        pytest.fail("/favicon.ico route is not registered")


def test_lookup_chain_routes_are_mounted() -> None:
    app = create_app()
    paths = {getattr(route, "path", None) for route in app.routes}
    assert {
        "/api/lookup-chain/state",
        "/api/lookup-chain/steps",
        "/api/lookup-chain/steps/remove",
        "/api/lookup-chain/steps/field",
    } <= paths
