"""Terraform command construction.

Arguments are kept as data until the last moment:

- ``"no-color"`` renders as ``-no-color``
- ``("input", "false")`` renders as ``-input=false``
- ``("var", "stage", "dev")`` renders as ``-var="stage=dev"``

Provider specific arguments come from one :class:`TerraformProvider`
subclass per :class:`~deployer.providers.CloudProviderType`; the registry is
checked for completeness when this module is imported.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type, TypeVar, Union

from deployer.directory import TF_STATE_FILENAME
from deployer.exceptions import ProcessError
from deployer.providers import AwsCloudProvider, CloudProviderType, GcpCloudProvider
from deployer.storage.base import Bucket

logger = logging.getLogger(__name__)

CommandArg = Union[str, Tuple[str, str], Tuple[str, str, str]]

NULL_VALUE = "NULL"

# (config attribute, enabled variable, max concurrency variable, api key variable)
GATEWAY_VARIABLES = (
    ("http_gateway", "http_gateway_enabled", "http_max_concurrency", "http_gateway_api_key"),
    (
        "http_signed_data_gateway",
        "http_signed_data_gateway_enabled",
        "http_signed_data_max_concurrency",
        "http_signed_data_gateway_api_key",
    ),
    ("oev_gateway", "oev_gateway_enabled", "oev_max_concurrency", "oev_gateway_api_key"),
)

_OUTPUT_KEYS = {
    "http_gateway_url": "httpGatewayUrl",
    "http_signed_data_gateway_url": "httpSignedDataGatewayUrl",
    "oev_gateway_url": "oevGatewayUrl",
}


def format_terraform_arguments(args: Iterable[CommandArg]) -> List[str]:
    """Render argument data into terraform command line flags."""
    formatted = []
    for arg in args:
        if isinstance(arg, str):
            formatted.append(f"-{arg}")
        elif len(arg) == 2:
            formatted.append(f"-{arg[0]}={arg[1]}")
        elif len(arg) == 3:
            formatted.append(f'-{arg[0]}="{arg[1]}={arg[2]}"')
        else:
            raise ValueError(f"Unsupported terraform argument: {arg!r}")
    return formatted


def build_terraform_command(
    command: str, args: Iterable[CommandArg] = (), options: Optional[Iterable[str]] = None
) -> str:
    """Build ``terraform <command> <flags> <options>`` as a single shell string."""
    parts = ["terraform", command, " ".join(format_terraform_arguments(args)), " ".join(options or [])]
    return " ".join(part for part in parts if part)


def parse_terraform_output(stdout: str) -> Dict[str, str]:
    """Extract gateway URLs from ``terraform output -json``.

    Returns:
        Camel-cased URL keys for the outputs that are present

    Raises:
        ProcessError: the output is not valid JSON
    """
    try:
        parsed = json.loads(stdout or "{}")
    except json.JSONDecodeError as exc:
        raise ProcessError(
            f"Failed to parse terraform output: {exc}",
            command="terraform output",
            original_error=exc,
        ) from exc

    result = {}
    for output_name, key in _OUTPUT_KEYS.items():
        value = (parsed.get(output_name) or {}).get("value")
        if value is not None:
            result[key] = value
    return result


# ---------------------------------------------------------------------------
# Provider specific arguments
# ---------------------------------------------------------------------------


class TerraformProvider(ABC):
    """Arguments that differ between cloud providers."""

    provider_type: CloudProviderType

    @abstractmethod
    def region_arguments(self, cloud_provider: Any) -> List[CommandArg]:
        """Variables locating the deployment, also used by the state bootstrap."""

    @abstractmethod
    def manage_arguments(self, cloud_provider: Any, bucket: Bucket, deployment_path: str) -> List[CommandArg]:
        """Variables passed to ``apply``, ``import`` and ``destroy``."""

    @abstractmethod
    def init_arguments(self, bucket: Bucket, deployment_path: str) -> List[CommandArg]:
        """Backend configuration for ``init``."""

    def import_options(self, cloud_provider: Any) -> List[str]:
        """Positional ``terraform import`` arguments; empty when nothing is imported."""
        return []


P = TypeVar("P", bound=Type[TerraformProvider])

TERRAFORM_PROVIDERS: Dict[CloudProviderType, TerraformProvider] = {}


def register_terraform_provider(name: str) -> Callable[[P], P]:
    def decorator(provider_class: P) -> P:
        provider_type = CloudProviderType(name.lower())
        provider_class.provider_type = provider_type
        TERRAFORM_PROVIDERS[provider_type] = provider_class()
        return provider_class

    return decorator


@register_terraform_provider("aws")
class AwsTerraformProvider(TerraformProvider):
    def region_arguments(self, cloud_provider: AwsCloudProvider) -> List[CommandArg]:
        return [("var", "aws_region", cloud_provider.region)]

    def manage_arguments(
        self, cloud_provider: AwsCloudProvider, bucket: Bucket, deployment_path: str
    ) -> List[CommandArg]:
        return self.region_arguments(cloud_provider)

    def init_arguments(self, bucket: Bucket, deployment_path: str) -> List[CommandArg]:
        # GCS always names the state file default.tfstate, S3 uses the same name for consistency
        return [
            ("backend-config", "region", bucket.region),
            ("backend-config", "bucket", bucket.name),
            ("backend-config", "key", f"{deployment_path}/{TF_STATE_FILENAME}"),
        ]


@register_terraform_provider("gcp")
class GcpTerraformProvider(TerraformProvider):
    def region_arguments(self, cloud_provider: GcpCloudProvider) -> List[CommandArg]:
        return [
            ("var", "gcp_region", cloud_provider.region),
            ("var", "gcp_project", cloud_provider.project_id),
        ]

    def manage_arguments(
        self, cloud_provider: GcpCloudProvider, bucket: Bucket, deployment_path: str
    ) -> List[CommandArg]:
        return self.region_arguments(cloud_provider) + [
            ("var", "airnode_bucket", bucket.name),
            ("var", "deployment_bucket_dir", deployment_path),
        ]

    def init_arguments(self, bucket: Bucket, deployment_path: str) -> List[CommandArg]:
        return [
            ("backend-config", "bucket", bucket.name),
            ("backend-config", "prefix", deployment_path),
        ]

    def import_options(self, cloud_provider: GcpCloudProvider) -> List[str]:
        # An App Engine application can't be deleted, a redeploy must adopt the existing one
        return ["module.startCoordinator.google_app_engine_application.app[0]", cloud_provider.project_id]


_missing = set(CloudProviderType) - set(TERRAFORM_PROVIDERS)
if _missing:
    raise ImportError(
        f"No terraform provider registered for: {', '.join(sorted(p.value for p in _missing))}"
    )


def get_terraform_provider(provider_type: Union[CloudProviderType, str]) -> TerraformProvider:
    return TERRAFORM_PROVIDERS[CloudProviderType(provider_type)]


# ---------------------------------------------------------------------------
# Common arguments
# ---------------------------------------------------------------------------


def _resolve_file(path: Optional[Union[str, Path]]) -> str:
    return os.path.abspath(path) if path else NULL_VALUE


def common_manage_arguments(
    airnode_address_short: str,
    stage: str,
    handler_dir: Union[str, Path],
    disable_concurrency_reservations: bool,
    config_path: Optional[Union[str, Path]] = None,
    secrets_path: Optional[Union[str, Path]] = None,
    max_concurrency: Optional[int] = None,
) -> List[CommandArg]:
    """Variables shared by every provider for ``apply``, ``import`` and ``destroy``.

    Missing configuration or secrets paths are passed as ``NULL``; destroy
    does not need the files.
    """
    args: List[CommandArg] = [
        ("var", "airnode_address_short", airnode_address_short),
        ("var", "stage", stage),
        ("var", "configuration_file", _resolve_file(config_path)),
        ("var", "secrets_file", _resolve_file(secrets_path)),
        ("var", "handler_dir", str(handler_dir)),
        ("var", "disable_concurrency_reservation", str(bool(disable_concurrency_reservations)).lower()),
    ]
    if max_concurrency is not None:
        args.append(("var", "max_concurrency", str(max_concurrency)))
    args.extend([("input", "false"), "no-color"])
    return args


def gateway_arguments(node_settings: Any) -> List[CommandArg]:
    """Variables for every enabled gateway of the node settings."""
    args: List[CommandArg] = []
    for attribute, enabled_var, concurrency_var, api_key_var in GATEWAY_VARIABLES:
        gateway = getattr(node_settings, attribute, None)
        if gateway is None or not gateway.enabled:
            continue
        args.append(("var", enabled_var, "true"))
        if gateway.max_concurrency:
            args.append(("var", concurrency_var, str(gateway.max_concurrency)))
        if gateway.api_key:
            args.append(("var", api_key_var, gateway.api_key))
    return args


def state_bucket_name(airnode_address_short: str, stage: str) -> str:
    """Name of the bucket holding the bootstrap terraform state."""
    return f"airnode-{airnode_address_short}-{stage}-terraform"
