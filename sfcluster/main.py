from __future__ import annotations

import logging
import os, shutil
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from sfcluster.models import PlanRequest, UpRequest, PreviewRequest, DestroyRequest, AzureCreds
from sfcluster.services.utils import get_allowed_origins, configure_logging
from sfcluster.services.pulumi_engine import PulumiEngine, init_pulumi_env
from sfcluster.services.dependency_plan import plan_for, waves
from sfcluster.services.validator import PayloadValidator
from sfcluster.services.version_registry import VersionRegistry

load_dotenv()
configure_logging()
init_pulumi_env()

logger = logging.getLogger(__name__)

app = FastAPI(title="Service Fabric cluster → Pulumi Backend", version="0.3.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def _export_azure_creds(creds: Optional[AzureCreds]):
    if not creds:
        return
    os.environ["ARM_CLIENT_ID"] = creds.clientId
    os.environ["ARM_CLIENT_SECRET"] = creds.clientSecret
    os.environ["ARM_TENANT_ID"] = creds.tenantId
    os.environ["ARM_SUBSCRIPTION_ID"] = creds.subscriptionId

@app.get("/health")
def health():
    return {
        "status": "ok",
        "locationDefault": os.getenv("AZURE_LOCATION", "SoutheastAsia"),
        "pulumiOnPath": bool(shutil.which("pulumi")),
        "backend": os.getenv("PULUMI_BACKEND_URL", ""),
        "topologyVersions": VersionRegistry.get_supported_versions(),
    }

@app.post("/plan")
def plan(req: PlanRequest):
    try:
        cluster = req.cluster
        declarations = plan_for(cluster.version)
        return {
            "version": cluster.version,
            "declarations": [d.model_dump() for d in declarations],
            "waves": waves(declarations),
            "validation": PayloadValidator.validate(cluster.model_dump()),
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/preview")
def preview(req: PreviewRequest):
    try:
        _export_azure_creds(req.creds)
        return PulumiEngine.preview(req.cluster.model_dump())
    except Exception as e:
        logger.exception("preview failed")
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/up")
def up(req: UpRequest):
    try:
        _export_azure_creds(req.creds)
        return PulumiEngine.up(req.cluster.model_dump())
    except Exception as e:
        logger.exception("up failed")
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/destroy")
def destroy(req: DestroyRequest):
    try:
        _export_azure_creds(req.creds)
        creds = req.creds.model_dump() if req.creds else None
        return PulumiEngine.destroy(req.project, req.env, req.resource_group_name, creds)
    except Exception as e:
        logger.exception("destroy failed")
        raise HTTPException(status_code=400, detail=str(e))
