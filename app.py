#!/usr/bin/env python3
"""
FastAPI application for the content pipeline service
"""

from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from auth import WebhookSecretMiddleware
from src.config import PORT, check_environment
from src.content_pipeline.runtime import ensure_indexes
from src.database import db
from src.errors import PipelineError

# Import routers
from src.diagnostics import router as diagnostics_router
from src.keywords import router as keywords_router
from src.webhooks import router as webhooks_router

# Initialize FastAPI app
app = FastAPI(title="Content Pipeline API")

app.add_middleware(WebhookSecretMiddleware)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    print(f"[API] {request.url.path}: {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"path": ".".join(str(part) for part in err.get("loc", ()) if part != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    print(f"[API] {request.url.path}: invalid request data {details}")
    return JSONResponse(status_code=400, content={"error": "Invalid request data", "details": details})


@app.on_event("startup")
async def startup():
    check_environment()
    try:
        ensure_indexes(db)
    except Exception as e:
        # worker.py creates them as well
        print(f"[API] Could not ensure MongoDB indexes: {e}")


# Include routers
app.include_router(webhooks_router)
app.include_router(keywords_router)
app.include_router(diagnostics_router)


@app.get("/health")
async def health():
    """Liveness check"""
    return {"status": "ok", "timestamp": datetime.utcnow().isoformat() + "Z"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
