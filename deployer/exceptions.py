"""Custom exception classes for airnode-deployer.

This module provides specific exception types for better error handling and debugging.
"""

from typing import Optional, Dict, Any, List


class DeployerError(Exception):
    """Base exception for all airnode-deployer errors."""

    error_code: str = "ERR000"  # Override in subclasses

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, error_code: Optional[str] = None):
        """
        Initialize airnode-deployer exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context
            error_code: Optional error code override
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def __str__(self) -> str:
        """Return string representation with error code and details."""
        parts = [f"[{self.error_code}] {self.message}"]
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class ConfigValidationError(DeployerError):
    """Raised when configuration validation fails.

    Examples:
        - Malformed config.json or secrets.env
        - Missing nodeSettings keys
        - Unsupported cloud provider
        - Unreadable receipt or settings file
    """

    error_code = "CFG001"

    def __init__(self, message: str, config_path: Optional[str] = None, key: Optional[str] = None):
        """
        Initialize configuration validation error.

        Args:
            message: Description of validation failure
            config_path: Path to config file that failed validation
            key: Specific configuration key that caused the error
        """
        details = {}
        if config_path:
            details['config_path'] = config_path
        if key:
            details['config_key'] = key
        super().__init__(message, details)


class ConsistencyError(DeployerError):
    """Raised when the stored deployment state contradicts the requested operation.

    Always fatal, never retried. Raised before any state is mutated.

    Examples:
        - Deployed node version differs from the deployer version
        - Deployed region differs from the requested region
        - Latest deployment version is missing mandatory files
    """

    error_code = "CON001"

    def __init__(
        self,
        message: str,
        check_type: Optional[str] = None,
        expected: Optional[Any] = None,
        actual: Optional[Any] = None,
    ):
        """
        Initialize consistency error.

        Args:
            message: Description of the inconsistency
            check_type: Which check failed (node_version, region, missing_files)
            expected: Value the deployer expected
            actual: Value found in the bucket
        """
        details = {}
        if check_type:
            details['check_type'] = check_type
        if expected is not None:
            details['expected'] = expected
        if actual is not None:
            details['actual'] = actual
        super().__init__(message, details)


class MultipleBucketsFoundError(ConsistencyError):
    """Raised when more than one Airnode bucket exists in a cloud account."""

    error_code = "CON002"

    def __init__(self, message: str, bucket_names: Optional[List[str]] = None):
        super().__init__(message, check_type="single_bucket")
        self.bucket_names = list(bucket_names or [])
        if self.bucket_names:
            self.details['buckets'] = ",".join(self.bucket_names)


class MalformedTreeError(ConsistencyError):
    """Raised when the bucket directory structure is corrupt.

    Examples:
        - An address or stage entry is a file instead of a directory
        - An address or stage directory exists but is empty
    """

    error_code = "CON003"

    def __init__(self, message: str, bucket_key: Optional[str] = None):
        super().__init__(message, check_type="directory_structure")
        self.bucket_key = bucket_key
        if bucket_key:
            self.details['bucket_key'] = bucket_key


class ProviderError(DeployerError):
    """Raised when a cloud provider SDK operation fails.

    Examples:
        - Bucket listing or creation failures
        - Object upload/download/copy failures
        - Permission errors
        - Network connectivity issues
    """

    error_code = "PRV001"

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        operation: Optional[str] = None,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
        original_error: Optional[BaseException] = None
    ):
        """
        Initialize provider error.

        Args:
            message: Description of the failure
            provider: Cloud provider type (aws, gcp)
            operation: Operation that failed (list_buckets, put_object, ...)
            bucket: Bucket involved in the operation
            key: Object key involved in the operation
            original_error: Original exception that caused this error
        """
        details = {}
        if provider:
            details['provider'] = provider
        if operation:
            details['operation'] = operation
        if bucket:
            details['bucket'] = bucket
        if key:
            details['key'] = key
        if original_error:
            details['original_error'] = str(original_error)
            details['error_type'] = type(original_error).__name__

        super().__init__(message, details)
        self.provider = provider
        self.operation = operation
        self.bucket = bucket
        self.key = key
        self.original_error = original_error


class ProcessError(DeployerError):
    """Raised when an external command exits with a failure."""

    error_code = "PRC001"

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        cwd: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
        original_error: Optional[BaseException] = None
    ):
        details: Dict[str, Any] = {}
        if command:
            details['command'] = command
        if cwd:
            details['cwd'] = cwd
        if returncode is not None:
            details['returncode'] = returncode
        super().__init__(message, details)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr or ""
        self.original_error = original_error


class NoBucketAvailableError(DeployerError):
    """Raised when a removal is requested but no Airnode bucket exists."""

    error_code = "DEP001"

    def __init__(self, message: str, provider: Optional[str] = None):
        details = {'provider': provider} if provider else None
        super().__init__(message, details)


class DeploymentNotFoundError(DeployerError):
    """Raised when no deployment exists for the requested address and stage."""

    error_code = "DEP002"

    def __init__(self, airnode_address: str, stage: str, version: Optional[str] = None):
        details: Dict[str, Any] = {'airnode_address': airnode_address, 'stage': stage}
        message = f"No deployment found for Airnode '{airnode_address}' and stage '{stage}'"
        if version is not None:
            details['version'] = version
            message += f" with version '{version}'"
        super().__init__(message, details)
        self.airnode_address = airnode_address
        self.stage = stage
        self.version = version


class AggregateError(DeployerError):
    """Raised when a failed deployment could not be rolled back either.

    Both underlying errors are kept and reported separately, deployment first.
    """

    error_code = "AGG001"

    def __init__(self, deployment_error: BaseException, removal_error: BaseException):
        self.deployment_error = deployment_error
        self.removal_error = removal_error
        super().__init__("\n".join(self.messages))

    @property
    def messages(self) -> List[str]:
        return [
            "Deployment error:",
            str(self.deployment_error),
            "Removal error:",
            str(self.removal_error),
        ]
