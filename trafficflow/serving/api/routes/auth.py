"""
Credential Endpoints

Upload a service-account key in exchange for a short-lived token, and
revoke tokens.
"""

from typing import Dict, List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field
import structlog

from trafficflow.config import get_settings
from trafficflow.exceptions import BackendQueryError
from trafficflow.ingestion.clients import GoogleBackendFactory
from trafficflow.serving.api.dependencies import get_backend_factory, get_store
from trafficflow.serving.credentials import CredentialStore, parse_service_account_key

router = APIRouter()
logger = structlog.get_logger(__name__)


class DatasetInfo(BaseModel):
    """BigQuery dataset visible to the uploaded key"""
    id: str
    location: str


class UploadKeyResponse(BaseModel):
    """Token issued for an uploaded key"""
    model_config = ConfigDict(populate_by_name=True)

    status: str = "ok"
    token: str
    project_id: str = Field(alias="projectId")
    bq_datasets: List[DatasetInfo] = Field(default_factory=list, alias="bqDatasets")
    expires_in: int = Field(alias="expiresIn")
    message: str


@router.post("/upload-key", response_model=UploadKeyResponse, response_model_by_alias=True)
async def upload_key(
    key_file: UploadFile = File(...),
    store: CredentialStore = Depends(get_store),
    factory: GoogleBackendFactory = Depends(get_backend_factory),
) -> UploadKeyResponse:
    """
    Validate and store a service-account key.

    The key must load as signing credentials, so a malformed private_key is
    rejected here with a 400 rather than at the first job. BigQuery datasets
    of the key's project are listed so the client can offer them for
    historical jobs; a failing listing only yields an empty list.
    """
    settings = get_settings()
    content = await key_file.read(settings.security.max_key_file_bytes + 1)
    if len(content) > settings.security.max_key_file_bytes:
        raise HTTPException(status_code=413, detail="Key file too large")

    key = parse_service_account_key(content)
    factory.credentials(key)
    project_id = key["project_id"]

    datasets: List[Dict[str, str]] = []
    try:
        datasets = await factory.bigquery(key).list_datasets()
        logger.info("Detected BigQuery datasets", project_id=project_id, datasets=len(datasets))
    except BackendQueryError as e:
        logger.warning("BigQuery dataset detection failed", project_id=project_id, error=e.reason)

    token = await store.store(key)
    ttl = settings.credentials.token_ttl_seconds

    return UploadKeyResponse(
        token=token,
        project_id=project_id,
        bq_datasets=[DatasetInfo(**dataset) for dataset in datasets],
        expires_in=ttl,
        message=f"Key validated and stored temporarily for {ttl // 60} minutes.",
    )


@router.delete("/token/{token}")
async def revoke_token(token: str, store: CredentialStore = Depends(get_store)) -> Dict[str, str]:
    """Expire a token before its TTL"""
    if not await store.expire(token):
        raise HTTPException(status_code=404, detail="Token not found")
    return {"status": "revoked"}
