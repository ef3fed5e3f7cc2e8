"""Object storage on DigitalOcean Spaces (S3 API)."""

import asyncio
import logging
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig

from sitebuilder.config import settings

logger = logging.getLogger("sitebuilder.storage")


def _get_s3_client():
    """Create a boto3 S3 client configured for DigitalOcean Spaces."""
    return boto3.client(
        "s3",
        endpoint_url=settings.DO_SPACES_ORIGIN_ENDPOINT or None,
        aws_access_key_id=settings.DO_SPACES_KEY,
        aws_secret_access_key=settings.DO_SPACES_SECRET,
        region_name=settings.DO_SPACES_REGION,
        config=BotoConfig(signature_version="s3v4"),
    )


class SpacesStorage:
    def __init__(self, client=None, bucket: Optional[str] = None, cdn_endpoint: Optional[str] = None):
        self._client = client
        self.bucket = bucket or settings.DO_SPACES_BUCKET_NAME
        self.cdn_endpoint = (cdn_endpoint or settings.DO_SPACES_CDN_ENDPOINT).rstrip("/")

    @property
    def client(self):
        if self._client is None:
            self._client = _get_s3_client()
        return self._client

    def _put(self, key: str, body: bytes, content_type: str) -> None:
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ACL="public-read",
            ContentType=content_type,
        )

    async def upload(self, body: bytes, filename: str, folder: str = "generated",
                     content_type: str = "application/octet-stream") -> str:
        """Upload a public object and return its CDN URL."""
        key = f"{folder}/{filename}"
        await asyncio.to_thread(self._put, key, body, content_type)
        logger.info("Uploaded %s (%d bytes)", key, len(body))
        return f"{self.cdn_endpoint}/{key}"

    def _delete_prefix(self, prefix: str) -> int:
        deleted = 0
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                self.client.delete_object(Bucket=self.bucket, Key=obj["Key"])
                deleted += 1
        return deleted

    async def delete_folder(self, folder: str) -> int:
        """Delete every object under `folder/`. Returns the number removed."""
        deleted = await asyncio.to_thread(self._delete_prefix, f"{folder}/")
        logger.info("Deleted %d object(s) under %s/", deleted, folder)
        return deleted
