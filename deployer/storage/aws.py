"""S3 storage gateway for airnode-deployer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from deployer.directory import Directory, gather_bucket_keys
from deployer.exceptions import ProviderError
from deployer.providers import AwsCloudProvider
from deployer.storage.base import Bucket, StorageGateway, generate_bucket_name
from deployer.storage.registry import register_gateway

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
# Maximum number of keys S3 accepts in a single list or delete_objects call
PAGE_LIMIT = 1000


def normalize_bucket_region(location: Optional[str]) -> str:
    """Translate a ``LocationConstraint`` value into a region name.

    Buckets in ``us-east-1`` report an empty (or null) constraint and legacy
    buckets may still report ``EU``.
    """
    if not location:
        return DEFAULT_REGION
    if location == "EU":
        return "eu-west-1"
    return location


@register_gateway("aws")
class AwsStorageGateway(StorageGateway):
    """Airnode bucket management on AWS S3 using boto3."""

    provider = "aws"

    def __init__(self, cloud_provider: Optional[AwsCloudProvider] = None, session: Optional[Any] = None):
        """Initialize the S3 gateway.

        Args:
            cloud_provider: Provider settings; its region is used for new clients
            session: Optional boto3 session, the default session is used otherwise
        """
        self.region = cloud_provider.region if cloud_provider else None
        self._session = session or boto3.session.Session()
        self._clients: Dict[Optional[str], Any] = {}

    def client(self, region: Optional[str] = None) -> Any:
        region = region or self.region
        if region not in self._clients:
            self._clients[region] = self._session.client("s3", region_name=region)
            logger.debug("Created S3 client for region '%s'", region or "default")
        return self._clients[region]

    def _is_transient(self, exc: BaseException) -> bool:
        if isinstance(exc, BotoCoreError):
            return True
        if isinstance(exc, ClientError):
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0) or 0
            code = exc.response.get("Error", {}).get("Code")
            return (
                status == 429
                or status >= 500
                or code in {"SlowDown", "RequestLimitExceeded", "Throttling"}
            )
        return False

    def _list_bucket_names(self) -> List[str]:
        logger.debug("Listing S3 buckets")
        response = self._call(
            "list_buckets",
            lambda: self.client().list_buckets(),
            message="Failed to list S3 buckets",
        )
        return [bucket["Name"] for bucket in response.get("Buckets", [])]

    def _get_bucket_region(self, bucket_name: str) -> str:
        response = self._call(
            "get_bucket_location",
            lambda: self.client().get_bucket_location(Bucket=bucket_name),
            bucket=bucket_name,
            message=f"Failed to get location for bucket '{bucket_name}'",
        )
        return normalize_bucket_region(response.get("LocationConstraint"))

    def _list_bucket_keys(self, bucket: Bucket) -> List[str]:
        logger.debug("Listing objects for S3 bucket '%s'", bucket.name)

        def list_keys() -> List[str]:
            paginator = self.client(bucket.region).get_paginator("list_objects_v2")
            keys: List[str] = []
            for page in paginator.paginate(Bucket=bucket.name):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
            return keys

        return self._call(
            "list_objects_v2",
            list_keys,
            bucket=bucket.name,
            message=f"Failed to list content of bucket '{bucket.name}'",
        )

    def create_airnode_bucket(self, cloud_provider: AwsCloudProvider) -> Bucket:
        """Create the Airnode bucket with encryption and a public access block.

        A failure after the bucket itself was created leaves the bucket in
        place; the error names the bucket so it can be fixed or removed.
        """
        region = cloud_provider.region
        bucket_name = generate_bucket_name()
        client = self.client(region)

        create_params: Dict[str, Any] = {"Bucket": bucket_name}
        # us-east-1 rejects an explicit location constraint
        if region != DEFAULT_REGION:
            create_params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        logger.debug("Creating S3 bucket '%s' in '%s'", bucket_name, region)
        self._call(
            "create_bucket",
            lambda: client.create_bucket(**create_params),
            bucket=bucket_name,
            message="Failed to create an S3 bucket",
        )

        logger.debug("Setting encryption for S3 bucket '%s'", bucket_name)
        self._call(
            "put_bucket_encryption",
            lambda: client.put_bucket_encryption(
                Bucket=bucket_name,
                ServerSideEncryptionConfiguration={
                    "Rules": [
                        {
                            "ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": "AES256"},
                            "BucketKeyEnabled": True,
                        }
                    ]
                },
            ),
            bucket=bucket_name,
            message=f"Failed to enable encryption for bucket '{bucket_name}'",
        )

        logger.debug("Setting public access block for S3 bucket '%s'", bucket_name)
        self._call(
            "put_public_access_block",
            lambda: client.put_public_access_block(
                Bucket=bucket_name,
                PublicAccessBlockConfiguration={
                    "BlockPublicAcls": True,
                    "BlockPublicPolicy": True,
                    "IgnorePublicAcls": True,
                    "RestrictPublicBuckets": True,
                },
            ),
            bucket=bucket_name,
            message=f"Failed to setup a public access block for bucket '{bucket_name}'",
        )

        return Bucket(name=bucket_name, region=region)

    def backing_store_exists(self, name: str) -> bool:
        def head() -> bool:
            try:
                self.client().head_bucket(Bucket=name)
            except ClientError as exc:
                code = str(exc.response.get("Error", {}).get("Code", ""))
                if code in {"404", "NoSuchBucket", "NotFound"}:
                    return False
                raise
            return True

        return self._call(
            "head_bucket",
            head,
            bucket=name,
            message=f"Failed to check state bucket '{name}'",
        )

    def store_file_to_bucket(self, bucket: Bucket, bucket_key: str, local_path: str) -> None:
        logger.debug("Storing file '%s' as '%s' to S3 bucket '%s'", local_path, bucket_key, bucket.name)
        self._call(
            "put_object",
            lambda: self.client(bucket.region).put_object(
                Bucket=bucket.name, Key=bucket_key, Body=Path(local_path).read_bytes()
            ),
            bucket=bucket.name,
            key=bucket_key,
            message=f"Failed to store file '{local_path}' to S3 bucket '{bucket.name}'",
        )

    def get_file_from_bucket(self, bucket: Bucket, bucket_key: str) -> str:
        logger.debug("Fetching file '%s' from S3 bucket '%s'", bucket_key, bucket.name)

        def fetch() -> str:
            response = self.client(bucket.region).get_object(Bucket=bucket.name, Key=bucket_key)
            body = response.get("Body")
            if body is None:
                raise ProviderError(
                    f"The response for file '{bucket_key}' from S3 bucket '{bucket.name}' contained an empty body",
                    provider=self.provider,
                    operation="get_object",
                    bucket=bucket.name,
                    key=bucket_key,
                )
            return body.read().decode("utf-8")

        return self._call(
            "get_object",
            fetch,
            bucket=bucket.name,
            key=bucket_key,
            message=f"Failed to fetch file '{bucket_key}' from S3 bucket '{bucket.name}'",
        )

    def copy_file_in_bucket(self, bucket: Bucket, from_key: str, to_key: str) -> None:
        logger.debug(
            "Copying file '%s' to file '%s' within S3 bucket '%s'", from_key, to_key, bucket.name
        )
        self._call(
            "copy_object",
            lambda: self.client(bucket.region).copy_object(
                Bucket=bucket.name,
                CopySource={"Bucket": bucket.name, "Key": from_key},
                Key=to_key,
            ),
            bucket=bucket.name,
            key=from_key,
            message=(
                f"Failed to copy file '{from_key}' to file '{to_key}' "
                f"within S3 bucket '{bucket.name}'"
            ),
        )

    def _delete_objects(self, bucket: Bucket, objects: List[Dict[str, str]], operation: str, message: str) -> None:
        client = self.client(bucket.region)
        for start in range(0, len(objects), PAGE_LIMIT):
            batch = objects[start:start + PAGE_LIMIT]
            response = self._call(
                operation,
                lambda: client.delete_objects(
                    Bucket=bucket.name, Delete={"Objects": batch, "Quiet": True}
                ),
                bucket=bucket.name,
                message=message,
            )
            errors = response.get("Errors", [])
            if errors:
                first = errors[0]
                raise ProviderError(
                    f"{message}: {first.get('Code')}: {first.get('Message')}",
                    provider=self.provider,
                    operation=operation,
                    bucket=bucket.name,
                    key=first.get("Key"),
                )

    def delete_bucket_directory(self, bucket: Bucket, directory: Directory) -> None:
        bucket_keys = gather_bucket_keys(directory)
        logger.debug("Deleting files from S3 bucket '%s': %s", bucket.name, bucket_keys)
        self._delete_objects(
            bucket,
            [{"Key": key} for key in bucket_keys],
            "delete_objects",
            f"Failed to delete bucket directory '{directory.bucket_key}' and its content",
        )

    def delete_bucket(self, bucket: Bucket) -> None:
        client = self.client(bucket.region)
        message = f"Failed to empty S3 bucket '{bucket.name}'"

        # S3 refuses to delete a bucket that still holds objects, versions or delete markers
        while True:
            response = self._call(
                "list_objects_v2",
                lambda: client.list_objects_v2(Bucket=bucket.name, MaxKeys=PAGE_LIMIT),
                bucket=bucket.name,
                message=message,
            )
            objects = [{"Key": obj["Key"]} for obj in response.get("Contents", [])]
            if not objects:
                break
            logger.debug("Deleting %d objects from S3 bucket '%s'", len(objects), bucket.name)
            self._delete_objects(bucket, objects, "delete_objects", message)

        while True:
            response = self._call(
                "list_object_versions",
                lambda: client.list_object_versions(Bucket=bucket.name, MaxKeys=PAGE_LIMIT),
                bucket=bucket.name,
                message=message,
            )
            versions = [
                {"Key": item["Key"], "VersionId": item["VersionId"]}
                for item in response.get("Versions", []) + response.get("DeleteMarkers", [])
            ]
            if not versions:
                break
            logger.debug("Deleting %d object versions from S3 bucket '%s'", len(versions), bucket.name)
            self._delete_objects(bucket, versions, "delete_objects", message)

        logger.debug("Deleting S3 bucket '%s'", bucket.name)
        self._call(
            "delete_bucket",
            lambda: client.delete_bucket(Bucket=bucket.name),
            bucket=bucket.name,
            message=f"Failed to delete S3 bucket '{bucket.name}'",
        )
