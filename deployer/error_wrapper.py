"""Helpers to wrap third-party exceptions into domain exceptions.

Provides consistent error handling by mapping boto3, google-cloud-storage and
subprocess exceptions into airnode-deployer's typed exception hierarchy.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Any, Callable, Optional, TypeVar

from deployer.exceptions import DeployerError, ProcessError, ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def wrap_provider_error(
    func: Callable[..., T],
    provider: str,
    operation: str,
    bucket: Optional[str] = None,
    key: Optional[str] = None,
    message: Optional[str] = None,
) -> Callable[..., T]:
    """Decorator to wrap cloud SDK exceptions.

    Args:
        func: Function to wrap
        provider: Cloud provider type (aws, gcp)
        operation: Operation being performed (list_buckets, put_object, ...)
        bucket: Bucket name (if applicable)
        key: Object key (if applicable)
        message: Human readable prefix; the original error is appended

    Returns:
        Wrapped function that raises ProviderError on failures
    """

    def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return func(*args, **kwargs)
        except DeployerError:
            # Already a domain exception, re-raise
            raise
        except Exception as exc:
            error_type = type(exc).__name__
            prefix = message or f"Provider operation '{operation}' failed"
            raise ProviderError(
                f"{prefix}: {error_type}: {exc}",
                provider=provider,
                operation=operation,
                bucket=bucket,
                key=key,
                original_error=exc,
            ) from exc

    return wrapper


def wrap_process_error(exc: subprocess.CalledProcessError, cwd: Optional[str] = None) -> ProcessError:
    """Convert a failed subprocess call into a ProcessError.

    Args:
        exc: Exception raised by ``subprocess.run(..., check=True)``
        cwd: Working directory the command ran in

    Returns:
        ProcessError with command, return code and stderr
    """
    command = exc.cmd if isinstance(exc.cmd, str) else " ".join(map(str, exc.cmd))
    stderr = exc.stderr if isinstance(exc.stderr, str) else ""
    detail = stderr.strip().splitlines()[-1] if stderr.strip() else f"exit status {exc.returncode}"
    return ProcessError(
        f"Command '{command}' failed: {detail}",
        command=command,
        cwd=cwd,
        returncode=exc.returncode,
        stderr=stderr,
        original_error=exc,
    )
