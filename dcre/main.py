"""DCRE FastAPI application."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dcre.api.admin import audit_router, build_admin_router, build_override_router
from dcre.api.cases import build_case_router
from dcre.api.health import router as health_router
from dcre.api.policies import router as policies_router
from dcre.config import settings
from dcre.engine.errors import CaseWorkflowError
from dcre.engine.workflows import WORKFLOWS

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="DCRE - Dispute & Complaint Resolution Engine",
    description="Dispute and complaint workflows for car-rental bookings with an append-only decision ledger",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CaseWorkflowError)
async def case_workflow_error_handler(request: Request, exc: CaseWorkflowError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(health_router, tags=["Health"])
for workflow in WORKFLOWS.values():
    plural = f"{workflow.kind.value}s"
    tag = plural.capitalize()
    app.include_router(build_case_router(workflow), prefix=f"/v1/{plural}", tags=[tag])
    app.include_router(build_admin_router(workflow), prefix=f"/v1/admin/{plural}", tags=["Admin"])
    app.include_router(
        build_override_router(workflow), prefix=f"/v1/prime-admin/{plural}", tags=["Prime Admin"]
    )
app.include_router(audit_router, prefix="/v1/prime-admin", tags=["Prime Admin"])
app.include_router(policies_router, prefix="/v1", tags=["Policies"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "DCRE", "version": "0.1.0", "docs": "/docs"}
