"""Artifact storage for raw SBOM documents (S3 via boto3)"""
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.errors import DependencyDegraded


logger = logging.getLogger(__name__)


class StorageError(DependencyDegraded):
    """Artifact store call failed or the store is not configured."""


class ArtifactStore(Protocol):
    def is_configured(self) -> bool:
        ...

    async def put_sbom(self, document: Any, project_id: str, sbom_id: str) -> str:
        ...

    async def delete_sbom(self, project_id: str, sbom_id: str) -> None:
        ...


def sbom_key(project_id: str, sbom_id: str) -> str:
    return f"sboms/{project_id}/{sbom_id}.json"


class S3ArtifactStore:
    """
    Stores SBOM JSON under ``sboms/<project_id>/<sbom_id>.json``.

    The boto3 client is only built when credentials are present; without them
    ``is_configured`` is False and every call raises ``StorageError``.
    """

    def __init__(
        self,
        bucket: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        timeout: float = 10.0,
        client: Any = None,
    ) -> None:
        self._bucket = bucket
        self._client = client
        if self._client is None and access_key_id and secret_access_key:
            self._client = boto3.client(
                "s3",
                region_name=region,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                endpoint_url=endpoint_url or None,
                config=Config(connect_timeout=timeout, read_timeout=timeout, retries={"max_attempts": 2}),
            )

    def is_configured(self) -> bool:
        return self._client is not None

    async def put_sbom(self, document: Any, project_id: str, sbom_id: str) -> str:
        if self._client is None:
            raise StorageError("Artifact store is not configured")
        key = sbom_key(project_id, sbom_id)
        body = json.dumps(document, indent=2).encode("utf-8")
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=body,
                ContentType="application/json",
                Metadata={
                    "project-id": project_id,
                    "sbom-id": sbom_id,
                    "uploaded-at": datetime.now(timezone.utc).isoformat(),
                },
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload SBOM: {exc.__class__.__name__}") from exc
        return f"s3://{self._bucket}/{key}"

    async def delete_sbom(self, project_id: str, sbom_id: str) -> None:
        if self._client is None:
            raise StorageError("Artifact store is not configured")
        try:
            await asyncio.to_thread(
                self._client.delete_object,
                Bucket=self._bucket,
                Key=sbom_key(project_id, sbom_id),
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to delete SBOM: {exc.__class__.__name__}") from exc


_artifact_store: Optional[S3ArtifactStore] = None


def get_artifact_store() -> ArtifactStore:
    """FastAPI dependency returning the process-wide artifact store."""
    global _artifact_store
    if _artifact_store is None:
        _artifact_store = S3ArtifactStore(
            bucket=settings.AWS_S3_BUCKET_NAME,
            region=settings.AWS_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            endpoint_url=settings.AWS_S3_ENDPOINT,
            timeout=settings.ARTIFACT_STORE_TIMEOUT_SECONDS,
        )
        if not _artifact_store.is_configured():
            logger.warning("artifact_store_unconfigured fallback=local")
    return _artifact_store
