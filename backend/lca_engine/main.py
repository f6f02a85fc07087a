"""
LCA Report Engine - FastAPI Application

Main entry point for the LCA Report Engine backend.

Architecture:
- Measurements → Aggregator → AggregationResult
- AggregationResult → Scoring / Recommendations / Compliance
- All of the above → Assembler → ReportDocument (fingerprinted, immutable)
"""
import math
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .routers import projects_router, reports_router, admin_router
from .database import init_db

CORS_ALLOW_ORIGINS = [
    origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()
]

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="LCA Report Engine",
    description="""
    LCA Report Engine - Life Cycle Assessment Reporting

    Aggregates per-stage environmental measurements for metal products and
    derives scores, recommendations, compliance checks and fingerprinted reports.

    ## Pipeline
    1. **Measurements**: entered or imported per project (CSV / JSON)
    2. **Aggregation**: per-stage totals and averages, project summary
    3. **Derivation**: sustainability scores, recommendations, compliance
    4. **Report**: immutable document with SHA-256 fingerprint

    ## Key Principles
    - Reports are immutable once stored
    - Same inputs and timestamp produce the same fingerprint
    - Derivation is deterministic (no randomness, no clock reads in the engine)
    """,
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(projects_router)
app.include_router(reports_router)
app.include_router(admin_router)


# =============================================================================
# Error Handlers
# =============================================================================

def _json_safe(value):
    """Replace NaN and infinities, which JSON cannot carry, with their string form."""
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """422 with the validation errors, echoing rejected inputs in JSON-safe form."""
    return JSONResponse(
        status_code=422,
        content={"detail": _json_safe(jsonable_encoder(exc.errors()))},
    )


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "LCA Report Engine",
        "version": VERSION,
        "description": "Life Cycle Assessment aggregation and reporting",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": VERSION}


# For running with: python -m lca_engine.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
