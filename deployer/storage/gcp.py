"""Google Cloud Storage gateway for airnode-deployer."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage

from deployer.directory import Directory, gather_bucket_keys
from deployer.providers import GcpCloudProvider
from deployer.storage.base import Bucket, StorageGateway, generate_bucket_name
from deployer.storage.registry import register_gateway

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "us"
PAGE_LIMIT = 1000

TRANSIENT_ERRORS = (
    gcs_exceptions.TooManyRequests,
    gcs_exceptions.InternalServerError,
    gcs_exceptions.BadGateway,
    gcs_exceptions.ServiceUnavailable,
    gcs_exceptions.GatewayTimeout,
)


def airnode_bucket_bindings(project_id: str) -> List[dict]:
    """IAM bindings granting project members legacy access to the Airnode bucket."""
    viewers = {f"projectViewer:{project_id}"}
    owners = {f"projectEditor:{project_id}", f"projectOwner:{project_id}"}
    return [
        {"role": "roles/storage.legacyBucketReader", "members": set(viewers)},
        {"role": "roles/storage.legacyBucketOwner", "members": set(owners)},
        {"role": "roles/storage.legacyObjectReader", "members": set(viewers)},
        {"role": "roles/storage.legacyObjectOwner", "members": set(owners)},
    ]


@register_gateway("gcp")
class GcpStorageGateway(StorageGateway):
    """Airnode bucket management on Google Cloud Storage."""

    provider = "gcp"

    def __init__(self, cloud_provider: Optional[GcpCloudProvider] = None, client: Optional[Any] = None):
        """Initialize the Cloud Storage gateway.

        Args:
            cloud_provider: Provider settings; its project id scopes the client
            client: Optional ``google.cloud.storage.Client``; Application Default
                Credentials are used to build one otherwise
        """
        self.project_id = cloud_provider.project_id if cloud_provider else None
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            if self.project_id:
                self._client = storage.Client(project=self.project_id)
            else:
                self._client = storage.Client()
            logger.debug("Created GCS client for project '%s'", self.project_id or "default")
        return self._client

    def _is_transient(self, exc: BaseException) -> bool:
        return isinstance(exc, TRANSIENT_ERRORS)

    def _list_bucket_names(self) -> List[str]:
        logger.debug("Listing GCS buckets")
        return self._call(
            "list_buckets",
            lambda: [bucket.name for bucket in self.client.list_buckets()],
            message="Failed to list GCS buckets",
        )

    def _get_bucket_region(self, bucket_name: str) -> str:
        location = self._call(
            "get_bucket",
            lambda: self.client.get_bucket(bucket_name).location,
            bucket=bucket_name,
            message=f"Failed to fetch metadata for bucket '{bucket_name}'",
        )
        return location.lower() if location else DEFAULT_LOCATION

    def _list_bucket_keys(self, bucket: Bucket) -> List[str]:
        logger.debug("Listing objects for GCS bucket '%s'", bucket.name)
        return self._call(
            "list_blobs",
            lambda: [blob.name for blob in self.client.list_blobs(bucket.name)],
            bucket=bucket.name,
            message=f"Failed to list content of bucket '{bucket.name}'",
        )

    def create_airnode_bucket(self, cloud_provider: GcpCloudProvider) -> Bucket:
        """Create the Airnode bucket with uniform access and project IAM bindings.

        A failure after the bucket itself was created leaves the bucket in
        place; the error names the bucket so it can be fixed or removed.
        """
        bucket_name = generate_bucket_name()
        region = cloud_provider.region

        logger.debug("Creating GCS bucket '%s' in '%s'", bucket_name, region)
        gcs_bucket = self._call(
            "create_bucket",
            lambda: self.client.create_bucket(bucket_name, location=region),
            bucket=bucket_name,
            message="Failed to create an GCS bucket",
        )

        def enable_uniform_access() -> None:
            gcs_bucket.iam_configuration.uniform_bucket_level_access_enabled = True
            gcs_bucket.iam_configuration.public_access_prevention = "enforced"
            gcs_bucket.patch()

        logger.debug("Setting uniform bucket-level access for GCS bucket '%s'", bucket_name)
        self._call(
            "patch_bucket",
            enable_uniform_access,
            bucket=bucket_name,
            message=f"Failed to setup a uniform bucket-level access for bucket '{bucket_name}'",
        )

        def set_policy() -> None:
            policy = gcs_bucket.get_iam_policy(requested_policy_version=3)
            policy.bindings = airnode_bucket_bindings(cloud_provider.project_id)
            gcs_bucket.set_iam_policy(policy)

        logger.debug("Setting IAM policy for GCS bucket '%s'", bucket_name)
        self._call(
            "set_iam_policy",
            set_policy,
            bucket=bucket_name,
            message=f"Failed to setup IAM policy for bucket '{bucket_name}'",
        )

        return Bucket(name=bucket_name, region=region)

    def backing_store_exists(self, name: str) -> bool:
        return self._call(
            "bucket_exists",
            lambda: self.client.bucket(name).exists(),
            bucket=name,
            message=f"Failed to check state bucket '{name}'",
        )

    def store_file_to_bucket(self, bucket: Bucket, bucket_key: str, local_path: str) -> None:
        logger.debug("Storing file '%s' as '%s' to GCS bucket '%s'", local_path, bucket_key, bucket.name)
        self._call(
            "upload",
            lambda: self.client.bucket(bucket.name).blob(bucket_key).upload_from_filename(local_path),
            bucket=bucket.name,
            key=bucket_key,
            message=f"Failed to store file '{local_path}' to GCS bucket '{bucket.name}'",
        )

    def get_file_from_bucket(self, bucket: Bucket, bucket_key: str) -> str:
        logger.debug("Fetching file '%s' from GCS bucket '%s'", bucket_key, bucket.name)
        return self._call(
            "download",
            lambda: self.client.bucket(bucket.name).blob(bucket_key).download_as_text(),
            bucket=bucket.name,
            key=bucket_key,
            message=f"Failed to fetch file '{bucket_key}' from GCS bucket '{bucket.name}'",
        )

    def copy_file_in_bucket(self, bucket: Bucket, from_key: str, to_key: str) -> None:
        logger.debug(
            "Copying file '%s' to file '%s' within GCS bucket '%s'", from_key, to_key, bucket.name
        )

        def copy() -> None:
            gcs_bucket = self.client.bucket(bucket.name)
            gcs_bucket.copy_blob(gcs_bucket.blob(from_key), gcs_bucket, to_key)

        self._call(
            "copy_blob",
            copy,
            bucket=bucket.name,
            key=from_key,
            message=(
                f"Failed to copy file '{from_key}' to file '{to_key}' "
                f"within GCS bucket '{bucket.name}'"
            ),
        )

    def delete_bucket_directory(self, bucket: Bucket, directory: Directory) -> None:
        bucket_keys = gather_bucket_keys(directory)
        logger.debug("Deleting files from GCS bucket '%s': %s", bucket.name, bucket_keys)

        def skip_missing(blob: Any) -> None:
            # Directory markers only exist when something created them explicitly
            logger.debug("Object '%s' not found in GCS bucket '%s'", blob.name, bucket.name)

        self._call(
            "delete_blobs",
            lambda: self.client.bucket(bucket.name).delete_blobs(bucket_keys, on_error=skip_missing),
            bucket=bucket.name,
            key=directory.bucket_key,
            message=f"Failed to delete bucket directory '{directory.bucket_key}' and its content",
        )

    def delete_bucket(self, bucket: Bucket) -> None:
        gcs_bucket = self.client.bucket(bucket.name)
        message = f"Failed to empty GCS bucket '{bucket.name}'"

        # Cloud Storage refuses to delete a bucket that still holds objects or noncurrent versions
        while True:
            blobs = self._call(
                "list_blobs",
                lambda: list(
                    self.client.list_blobs(bucket.name, versions=True, max_results=PAGE_LIMIT)
                ),
                bucket=bucket.name,
                message=message,
            )
            if not blobs:
                break
            logger.debug("Deleting %d object versions from GCS bucket '%s'", len(blobs), bucket.name)
            for blob in blobs:
                self._call(
                    "delete_blob",
                    lambda: gcs_bucket.delete_blob(blob.name, generation=blob.generation),
                    bucket=bucket.name,
                    key=blob.name,
                    message=f"Failed to delete bucket file '{blob.name}'",
                )

        logger.debug("Deleting GCS bucket '%s'", bucket.name)
        self._call(
            "delete_bucket",
            lambda: gcs_bucket.delete(),
            bucket=bucket.name,
            message=f"Failed to delete GCS bucket '{bucket.name}'",
        )
