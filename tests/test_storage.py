"""Tests for the Spaces storage wrapper (stubbed boto3 client)."""
import pytest
from botocore.exceptions import ClientError

from sitebuilder.services.storage import SpacesStorage


class _Paginator:
    def __init__(self, pages):
        self.pages = pages
        self.kwargs = None

    def paginate(self, **kwargs):
        self.kwargs = kwargs
        return iter(self.pages)


class _S3:
    def __init__(self, pages=None, put_error=None):
        self.put_calls = []
        self.deleted = []
        self.paginator = _Paginator(pages or [])
        self.put_error = put_error

    def put_object(self, **kwargs):
        if self.put_error:
            raise self.put_error
        self.put_calls.append(kwargs)

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        return self.paginator

    def delete_object(self, Bucket, Key):
        self.deleted.append((Bucket, Key))


def _storage(client):
    return SpacesStorage(client=client, bucket="sites", cdn_endpoint="https://cdn.test/")


async def test_upload_puts_public_object_and_returns_cdn_url():
    s3 = _S3()
    url = await _storage(s3).upload(b"png", "logo.png", folder="site-1", content_type="image/png")

    assert url == "https://cdn.test/site-1/logo.png"
    assert s3.put_calls == [{
        "Bucket": "sites",
        "Key": "site-1/logo.png",
        "Body": b"png",
        "ACL": "public-read",
        "ContentType": "image/png",
    }]


async def test_upload_propagates_client_error():
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
    with pytest.raises(ClientError):
        await _storage(_S3(put_error=error)).upload(b"png", "logo.png", folder="site-1")


async def test_delete_folder_removes_every_page():
    s3 = _S3(pages=[
        {"Contents": [{"Key": "site-1/logo.png"}, {"Key": "site-1/favicon.png"}]},
        {"Contents": [{"Key": "site-1/extra.png"}]},
        {},
    ])

    deleted = await _storage(s3).delete_folder("site-1")

    assert deleted == 3
    assert s3.paginator.kwargs == {"Bucket": "sites", "Prefix": "site-1/"}
    assert [key for _, key in s3.deleted] == ["site-1/logo.png", "site-1/favicon.png", "site-1/extra.png"]


async def test_delete_empty_folder():
    assert await _storage(_S3()).delete_folder("site-2") == 0
