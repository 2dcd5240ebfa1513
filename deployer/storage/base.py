"""Object storage gateway abstraction for airnode-deployer.

Every cloud provider keeps the Airnode deployment state in exactly one bucket
per account, named ``airnode-<12 lowercase hex>``. The gateways hide the SDK
differences behind the interface defined here; the orchestrator only ever
talks to :class:`StorageGateway`.
"""

from __future__ import annotations

import logging
import re
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, TypeVar

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from deployer.directory import Directory, DirectoryStructure, build_directory_structure
from deployer.error_wrapper import wrap_provider_error
from deployer.exceptions import MultipleBucketsFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")

BUCKET_NAME_PREFIX = "airnode-"
BUCKET_NAME_REGEX = re.compile(r"^airnode-[0-9a-f]{12}$")


@dataclass(frozen=True)
class Bucket:
    name: str
    region: str


def generate_bucket_name() -> str:
    """Return a fresh ``airnode-<12 hex>`` bucket name."""
    return f"{BUCKET_NAME_PREFIX}{secrets.token_hex(6)}"


def is_airnode_bucket_name(name: Optional[str]) -> bool:
    return bool(name) and BUCKET_NAME_REGEX.match(name) is not None


class StorageGateway(ABC):
    """Abstract base class for the per-provider object storage gateways.

    Subclasses implement the raw SDK calls (``_list_bucket_names``,
    ``_get_bucket_region``, ``_list_bucket_keys``) and the mutating
    operations. SDK calls go through :meth:`_call`, which retries transient
    failures with tenacity and wraps anything else into ``ProviderError``.
    """

    provider: str = ""
    max_attempts: int = 3
    retry_wait: Any = wait_exponential(multiplier=1, min=1, max=8)

    def _is_transient(self, exc: BaseException) -> bool:
        """Determine if an SDK exception should trigger a retry."""
        return False

    def _call(
        self,
        operation: str,
        func: Callable[[], T],
        *,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
        message: Optional[str] = None,
    ) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception(self._is_transient),
            reraise=True,
        )
        return wrap_provider_error(
            lambda: retrying(func),
            provider=self.provider,
            operation=operation,
            bucket=bucket,
            key=key,
            message=message,
        )()

    # ------------------------------------------------------------------
    # Provider specific primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _list_bucket_names(self) -> List[str]:
        """Return the names of every bucket visible to the credentials."""

    @abstractmethod
    def _get_bucket_region(self, bucket_name: str) -> str:
        """Return the normalized region of a bucket."""

    @abstractmethod
    def _list_bucket_keys(self, bucket: Bucket) -> List[str]:
        """Return every object key in the bucket, following pagination."""

    # ------------------------------------------------------------------
    # Gateway operations
    # ------------------------------------------------------------------

    def get_airnode_bucket(self) -> Optional[Bucket]:
        """Find the Airnode bucket of the account.

        Returns:
            The bucket, or None when the account has not been provisioned yet

        Raises:
            MultipleBucketsFoundError: More than one bucket matches the naming scheme
            ProviderError: The provider SDK call failed
        """
        names = [name for name in self._list_bucket_names() if is_airnode_bucket_name(name)]
        if len(names) > 1:
            raise MultipleBucketsFoundError(
                f"Multiple Airnode buckets found, stopping. Buckets: {', '.join(names)}",
                bucket_names=names,
            )
        if not names:
            logger.debug("No Airnode %s bucket found", self.provider.upper())
            return None

        region = self._get_bucket_region(names[0])
        return Bucket(name=names[0], region=region)

    @abstractmethod
    def create_airnode_bucket(self, cloud_provider: Any) -> Bucket:
        """Create a new Airnode bucket and apply the security baseline."""

    @abstractmethod
    def backing_store_exists(self, name: str) -> bool:
        """Whether the bucket holding the bootstrap terraform state exists."""

    def get_bucket_directory_structure(self, bucket: Bucket) -> DirectoryStructure:
        """List the whole bucket and translate it into a directory tree."""
        keys = self._list_bucket_keys(bucket)
        logger.debug("Listed %d keys in bucket '%s'", len(keys), bucket.name)
        return build_directory_structure(keys)

    @abstractmethod
    def store_file_to_bucket(self, bucket: Bucket, bucket_key: str, local_path: str) -> None:
        """Upload a local file under ``bucket_key``."""

    @abstractmethod
    def get_file_from_bucket(self, bucket: Bucket, bucket_key: str) -> str:
        """Return the UTF-8 content of an object."""

    @abstractmethod
    def copy_file_in_bucket(self, bucket: Bucket, from_key: str, to_key: str) -> None:
        """Server-side copy of an object within the bucket."""

    @abstractmethod
    def delete_bucket_directory(self, bucket: Bucket, directory: Directory) -> None:
        """Delete the directory marker and every object beneath it."""

    @abstractmethod
    def delete_bucket(self, bucket: Bucket) -> None:
        """Drain every object and object version, then delete the bucket."""
