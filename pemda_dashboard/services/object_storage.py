"""S3-compatible object storage for uploaded documents (MinIO in deployment)."""

import json
import logging
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..core.config import settings
from ..exceptions import NotFoundError, StorageError

logger = logging.getLogger(__name__)

_MISSING_CODES = frozenset({"404", "NoSuchKey", "NoSuchBucket", "NotFound"})


def _public_read_policy(bucket: str) -> str:
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"AWS": ["*"]},
            "Action": ["s3:GetObject"],
            "Resource": [f"arn:aws:s3:::{bucket}/*"],
        }],
    })


class ObjectStorage:
    """Thin wrapper over a boto3 S3 client scoped to one bucket.

    Objects are keyed ``{user_id}/{stored_filename}``; ``object_url`` builds
    the public link stored on each document record.
    """

    def __init__(self, client, bucket: str, public_base_url: str):
        self.client = client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_settings(cls) -> "ObjectStorage":
        client = boto3.client(
            "s3",
            endpoint_url=settings.minio_base_url,
            use_ssl=settings.minio_use_ssl,
            aws_access_key_id=settings.minio_access_key,
            aws_secret_access_key=settings.minio_secret_key,
            region_name="us-east-1",
            # MinIO serves buckets by path, not by virtual host.
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
        public_url = settings.minio_public_url or settings.minio_base_url
        return cls(client, settings.minio_bucket, public_url)

    def ensure_bucket(self) -> None:
        """Create the bucket if missing and allow anonymous GET on its objects."""
        try:
            try:
                self.client.head_bucket(Bucket=self.bucket)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") not in _MISSING_CODES:
                    raise
                self.client.create_bucket(Bucket=self.bucket)
                logger.info("Created bucket %s", self.bucket)

            self.client.put_bucket_policy(Bucket=self.bucket, Policy=_public_read_policy(self.bucket))
        except (BotoCoreError, ClientError):
            logger.exception("Failed to prepare bucket %s", self.bucket)
            raise

    @staticmethod
    def object_name(user_id: str, filename: str) -> str:
        return f"{user_id}/{filename}"

    def object_url(self, name: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{name}"

    def put_object(self, name: str, data: bytes, content_type: str, original_name: str) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=name,
                Body=data,
                ContentType=content_type,
                Metadata={"X-Original-Name": quote(original_name)},
            )
        except (BotoCoreError, ClientError) as e:
            logger.exception("Failed to upload object %s", name)
            raise StorageError("Failed to store file") from e
        logger.info("Stored object", extra={"object": name, "size": len(data)})

    def get_object(self, name: str):
        """Return the object's streaming body.

        Raises:
            NotFoundError: object missing from the bucket.
            StorageError: any other storage failure.
        """
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=name)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                raise NotFoundError("File not found in storage") from e
            logger.exception("Failed to read object %s", name)
            raise StorageError("Failed to download file") from e
        except BotoCoreError as e:
            logger.exception("Failed to read object %s", name)
            raise StorageError("Failed to download file") from e
        return response["Body"]

    def remove_object(self, name: Optional[str]) -> bool:
        """Delete an object. Best-effort: failures are logged, never raised."""
        if not name:
            return False
        try:
            self.client.delete_object(Bucket=self.bucket, Key=name)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning("Failed to delete object %s: %s", name, e)
            return False


_storage: Optional[ObjectStorage] = None


def get_storage() -> ObjectStorage:
    """FastAPI dependency returning the process-wide storage wrapper."""
    global _storage
    if _storage is None:
        _storage = ObjectStorage.from_settings()
    return _storage
