"""
FastAPI application factory for Swivel Counter.

Routes:
- /api/* -> REST API (status, sensor input, calibration, counter, settings)
- / and /assets/* -> built phone client (frontend/dist), when present
"""

from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from .routes import api


def create_app(dist_dir: str = "frontend/dist") -> FastAPI:
    """Create the FastAPI app and wire routes/static assets."""
    app = FastAPI(
        title="Swivel Counter",
        version="0.1.0",
        description="Counts excavator swivels from a phone compass",
    )

    # CORS for development (Vite dev server)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")

    dist_path = Path(dist_dir)
    assets_path = dist_path / "assets"
    if assets_path.exists():
        app.mount("/assets", StaticFiles(directory=str(assets_path)), name="assets")

    @app.get("/")
    async def index():
        index_file = dist_path / "index.html"
        if index_file.exists():
            return FileResponse(index_file)
        return JSONResponse(
            {"detail": "Client not built; the REST API is available under /api"},
            status_code=503,
        )

    return app


# Exported application instance for uvicorn
app = create_app()
