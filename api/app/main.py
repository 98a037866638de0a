"""FastAPI application entry point."""
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.api import approval_workflows, audit_logs, catalog_versions, catalogs, version_comparisons
from app.core.config import settings
from app.core.errors import CatalogError

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Course Catalog Versioning", version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    """Surface engine errors as structured JSON with a kind-specific status."""
    logger.info("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


# Routes
app.include_router(catalogs.router, prefix="/catalogs", tags=["catalogs"])
app.include_router(catalog_versions.router, prefix="/versions", tags=["catalog-versions"])
# Approval workflows gating version promotion
app.include_router(approval_workflows.router, prefix="/workflows", tags=["approval-workflows"])
app.include_router(version_comparisons.router, prefix="/comparisons", tags=["version-comparisons"])
app.include_router(audit_logs.router, prefix="/audit-logs", tags=["audit-logs"])


@app.get("/health")
def health_check():
    return {"status": "healthy"}
