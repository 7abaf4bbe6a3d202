from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Iterator, List
import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import EndpointConfig, MigrationOptions
from .errors import ListingFailed

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectDescriptor:
    key: str
    size: int = 0


def get_s3_client(
    aws_profile: Optional[str] = None,
    aws_access_key_id: Optional[str] = None,
    aws_secret_access_key: Optional[str] = None,
    region_name: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    retries_max_attempts: int = 8,
    retries_mode: str = "standard",
    connect_timeout: int = 10,
    read_timeout: int = 60,
):
    """
    Create a boto3 S3 client for any S3-compatible endpoint,
    with retries and timeouts applied.
    """
    cfg = Config(
        retries={"max_attempts": retries_max_attempts, "mode": retries_mode},
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
    )
    if aws_profile:
        session = boto3.Session(profile_name=aws_profile, region_name=region_name)
    else:
        session = boto3.Session(
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            region_name=region_name,
        )
    return session.client("s3", endpoint_url=endpoint_url or None, config=cfg)


def client_for(endpoint: EndpointConfig, options: Optional[MigrationOptions] = None):
    """Build an independent client for one side of the migration."""
    opts = options or MigrationOptions()
    return get_s3_client(
        aws_profile=endpoint.profile,
        aws_access_key_id=endpoint.access_key,
        aws_secret_access_key=endpoint.secret_key,
        region_name=endpoint.region,
        endpoint_url=endpoint.endpoint,
        retries_max_attempts=opts.retries_max_attempts,
        retries_mode=opts.retries_mode,
        connect_timeout=opts.connect_timeout,
        read_timeout=opts.read_timeout,
    )


def list_objects(s3_client, bucket: str, page_size: Optional[int] = None) -> Iterator[ObjectDescriptor]:
    """
    Yield a descriptor for every object in the bucket.
    Follows continuation tokens until the listing is no longer truncated.
    """
    paginator = s3_client.get_paginator("list_objects_v2")
    kwargs = {"Bucket": bucket}
    if page_size:
        kwargs["PaginationConfig"] = {"PageSize": page_size}
    for page in paginator.paginate(**kwargs):
        for obj in page.get("Contents", []) or []:
            key = obj.get("Key")
            if not key:
                continue
            yield ObjectDescriptor(key=key, size=int(obj.get("Size") or 0))


def collect_objects(s3_client, bucket: str, page_size: Optional[int] = None) -> List[ObjectDescriptor]:
    """Materialize the full listing. Enumeration errors are fatal; nothing partial is returned."""
    try:
        objects = list(list_objects(s3_client, bucket, page_size=page_size))
    except (ClientError, BotoCoreError) as e:
        log.error("Listing s3://%s failed: %s", bucket, e)
        raise ListingFailed(f"listing bucket {bucket} failed: {e}") from e
    log.info("Listed %d objects in s3://%s", len(objects), bucket)
    return objects
