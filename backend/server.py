from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import Response

from .routers import router as api_router


def create_app() -> FastAPI:
    app = FastAPI(title="KPI Lookup Chain Builder", version="1.0.0")
    app.include_router(api_router)

    @app.get("/favicon.ico", include_in_schema=False)
    def favicon() -> Response:
        """Return an empty response so browsers stop logging 404 errors."""

        return Response(status_code=204)

    return app


app = create_app()
