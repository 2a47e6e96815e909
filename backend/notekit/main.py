"""FastAPI application."""

from fastapi import FastAPI

from backend.notekit.api.routes.compiled import router as compiled_router
from backend.notekit.api.routes.friends import router as friends_router
from backend.notekit.api.routes.generate import router as generate_router
from backend.notekit.api.routes.health import router as health_router
from backend.notekit.api.routes.metrics import router as metrics_router
from backend.notekit.api.routes.notes import router as notes_router

app = FastAPI(title="Notekit API", version="0.1.0")

# Register routes; generation routes before /notes/{note_id}
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(generate_router)
app.include_router(notes_router)
app.include_router(compiled_router)
app.include_router(friends_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Notekit API", "version": "0.1.0"}
