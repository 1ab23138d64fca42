"""Shared boto3 helpers for service clients."""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config

from callreview.config.settings import StorageConfig


def create_boto3_client(
    service_name: str,
    *,
    region_name: str | None = None,
    aws_access_key_id: str | None = None,
    aws_secret_access_key: str | None = None,
    endpoint_url: str | None = None,
    path_style: bool = False,
) -> boto3.client:
    """Instantiate a boto3 client using explicit credentials if available."""

    client_kwargs: dict[str, Any] = {}
    if region_name:
        client_kwargs["region_name"] = region_name
    if aws_access_key_id and aws_secret_access_key:
        client_kwargs["aws_access_key_id"] = aws_access_key_id
        client_kwargs["aws_secret_access_key"] = aws_secret_access_key
    if endpoint_url:
        client_kwargs["endpoint_url"] = endpoint_url
    if path_style:
        client_kwargs["config"] = Config(s3={"addressing_style": "path"})
    return boto3.client(service_name, **client_kwargs)


def create_storage_client(config: StorageConfig) -> boto3.client:
    """S3 client for the configured (possibly non-AWS) object storage."""

    secret = config.secret_key.get_secret_value() if config.secret_key else None
    return create_boto3_client(
        "s3",
        region_name=config.region,
        aws_access_key_id=config.access_key,
        aws_secret_access_key=secret,
        endpoint_url=config.endpoint,
        path_style=bool(config.endpoint),
    )


__all__ = ["create_boto3_client", "create_storage_client"]
