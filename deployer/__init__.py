"""airnode-deployer: deploy and remove serverless Airnode instances.

Package layout:
    deployer.directory      - Virtual directory tree over bucket keys
    deployer.storage        - S3 and Cloud Storage gateways
    deployer.terraform      - Terraform argument and command construction
    deployer.command        - External command execution
    deployer.planner        - Removal planning
    deployer.orchestrator   - Deploy, remove and inspection workflows
    deployer.config         - Configuration, secrets and deployer settings
    deployer.receipt        - Receipt files
"""

from deployer._version import __version__
from deployer.config import (
    AirnodeConfig,
    AirnodeWallet,
    DeployerSettings,
    load_config,
    load_secrets,
    load_settings,
)
from deployer.exceptions import (
    AggregateError,
    ConfigValidationError,
    ConsistencyError,
    DeployerError,
    DeploymentNotFoundError,
    MalformedTreeError,
    MultipleBucketsFoundError,
    NoBucketAvailableError,
    ProcessError,
    ProviderError,
)
from deployer.orchestrator import DeploymentInfo, DeployOutcome, DeployState, Orchestrator
from deployer.providers import AwsCloudProvider, CloudProviderType, GcpCloudProvider

__all__ = [
    "__version__",
    "AggregateError",
    "AirnodeConfig",
    "AirnodeWallet",
    "AwsCloudProvider",
    "CloudProviderType",
    "ConfigValidationError",
    "ConsistencyError",
    "DeployOutcome",
    "DeployState",
    "DeployerError",
    "DeployerSettings",
    "DeploymentInfo",
    "DeploymentNotFoundError",
    "GcpCloudProvider",
    "MalformedTreeError",
    "MultipleBucketsFoundError",
    "NoBucketAvailableError",
    "Orchestrator",
    "ProcessError",
    "ProviderError",
    "load_config",
    "load_secrets",
    "load_settings",
]
