from __future__ import annotations
import io
from typing import Dict, List, Optional

import pytest
from botocore.exceptions import ClientError

from s3_migrate.config import EndpointConfig, MigrationConfig, MigrationOptions


def _client_error(op: str, code: str = "InternalError", message: str = "boom") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, op)


class FakePaginator:
    def __init__(self, client: "FakeS3Client"):
        self.client = client

    def paginate(self, Bucket: str, PaginationConfig: Optional[dict] = None):
        if self.client.fail_list:
            raise _client_error("ListObjectsV2", "AccessDenied", "Access Denied")
        page_size = (PaginationConfig or {}).get("PageSize") or self.client.page_size
        keys = list(self.client.objects(Bucket))
        start = 0
        while True:
            chunk = keys[start:start + page_size]
            start += page_size
            truncated = start < len(keys)
            self.client.list_calls += 1
            page = {
                "Contents": [{"Key": k, "Size": len(self.client.objects(Bucket)[k])} for k in chunk],
                "KeyCount": len(chunk),
                "IsTruncated": truncated,
            }
            if truncated:
                page["NextContinuationToken"] = f"token-{start}"
            yield page
            if not truncated:
                break


class FakeS3Client:
    """In-memory stand-in for the list/get/put subset of a boto3 S3 client."""

    def __init__(self, buckets: Optional[Dict[str, Dict[str, bytes]]] = None, page_size: int = 1000):
        self.buckets: Dict[str, Dict[str, bytes]] = buckets or {}
        self.page_size = page_size
        self.fail_get: set = set()
        self.fail_put: set = set()
        self.fail_list = False
        self.list_calls = 0
        self.get_calls: List[str] = []
        self.put_calls: List[str] = []

    def objects(self, bucket: str) -> Dict[str, bytes]:
        return self.buckets.setdefault(bucket, {})

    def get_paginator(self, name: str) -> FakePaginator:
        assert name == "list_objects_v2"
        return FakePaginator(self)

    def get_object(self, Bucket: str, Key: str):
        self.get_calls.append(Key)
        if Key in self.fail_get:
            raise _client_error("GetObject", "NoSuchKey", "The specified key does not exist.")
        data = self.objects(Bucket)[Key]
        return {"Body": io.BytesIO(data), "ContentLength": len(data)}

    def put_object(self, Bucket: str, Key: str, Body):
        self.put_calls.append(Key)
        if Key in self.fail_put:
            raise _client_error("PutObject")
        self.objects(Bucket)[Key] = Body.read()
        return {"ETag": '"fake"'}


@pytest.fixture
def source_client():
    return FakeS3Client({
        "src": {
            "a.txt": b"hello",
            "dir/b.txt": b"",
            "dir/c.txt": b"abc",
        }
    })


@pytest.fixture
def destination_client():
    return FakeS3Client({"dst": {}})


@pytest.fixture
def staging_root(tmp_path):
    return tmp_path / "staging"


@pytest.fixture
def make_config(staging_root):
    def _make(**options) -> MigrationConfig:
        return MigrationConfig(
            source=EndpointConfig(bucket="src", access_key="AK", secret_key="SK",
                                  endpoint="http://localhost:9000", region="us-east-1",
                                  local_download_path=str(staging_root)),
            destination=EndpointConfig(bucket="dst", access_key="AK2", secret_key="SK2",
                                       endpoint="http://localhost:9001", region="us-east-1"),
            options=MigrationOptions(**options),
        )
    return _make
