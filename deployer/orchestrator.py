"""Deploy and remove Airnode deployments.

The orchestrator ties the storage gateway, the terraform argument builder and
the command executor together. Each call manages exactly one
``(airnode address, stage)`` pair; concurrent invocations against the same
pair are not coordinated.

Deploy:

1. Bootstrap the terraform state bucket when it does not exist yet
2. Resolve or create the Airnode bucket
3. When the stage already exists, check the latest version for consistency
   and carry its terraform state over to the new version
4. Upload ``config.json`` and ``secrets.env`` under a new version directory
5. Run ``terraform init``/``import``/``apply``/``output``
6. On failure, optionally remove whatever was provisioned

Remove:

1. Locate the latest version and check it for consistency
2. Run ``terraform destroy`` against its state
3. Delete the stage directory, plus the address directory and the bucket
   when nothing else is left in them

Listing, describing and fetching the files of deployments only read the
bucket.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
import zipfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, NoReturn, Optional, Tuple, Union

from pydantic import ValidationError

from deployer._version import __version__
from deployer.command import CommandExecutor
from deployer.config import AirnodeConfig, AirnodeWallet, DeployerSettings, short_airnode_address
from deployer.directory import (
    CONFIG_FILENAME,
    MANDATORY_DEPLOYMENT_FILES,
    SECRETS_FILENAME,
    TF_STATE_FILENAME,
    Directory,
    get_latest_version,
    get_missing_files,
    get_stage_directory,
    sort_versions,
)
from deployer.exceptions import (
    AggregateError,
    ConfigValidationError,
    ConsistencyError,
    DeploymentNotFoundError,
    MalformedTreeError,
    NoBucketAvailableError,
    ProviderError,
)
from deployer.planner import execute_removal_plan, plan_removal
from deployer.progress import LoggingProgressReporter, ProgressReporter
from deployer.providers import AwsCloudProvider, CloudProviderType, GcpCloudProvider, parse_cloud_provider
from deployer.receipt import DeploymentStatus, build_receipt, read_receipt, write_receipt
from deployer.storage import get_storage_gateway
from deployer.storage.base import Bucket, StorageGateway
from deployer.terraform import (
    CommandArg,
    build_terraform_command,
    common_manage_arguments,
    gateway_arguments,
    get_terraform_provider,
    parse_terraform_output,
    state_bucket_name,
)

logger = logging.getLogger(__name__)


class DeployState(str, Enum):
    CHECKING_BACKING_STORE = "checking_backing_store"
    PROVISIONING = "provisioning"
    SUCCEEDED = "succeeded"
    FAILED_AUTO_REMOVE_DISABLED = "failed_auto_remove_disabled"
    FAILED_AUTO_REMOVE_ENABLED = "failed_auto_remove_enabled"


@dataclass
class DeployOutcome:
    """Result of a deploy: either terraform output or the error that stopped it."""

    state: DeployState
    version: Optional[str] = None
    output: Dict[str, str] = field(default_factory=dict)
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.state == DeployState.SUCCEEDED


@dataclass
class DeploymentInfo:
    """A deployed address/stage pair as recorded in the Airnode bucket."""

    airnode_address: str
    stage: str
    cloud_provider: Union[AwsCloudProvider, GcpCloudProvider]
    node_version: Optional[str]
    # Newest first
    versions: List[str]

    @property
    def last_update(self) -> str:
        return self.versions[0]


def _current_millis() -> int:
    return int(time.time() * 1000)


class Orchestrator:
    """Runs the deploy and remove workflows.

    Args:
        settings: Deployer settings (terraform recipes, rollback behaviour)
        executor: Runs terraform; a :class:`CommandExecutor` by default
        progress: Receives start/succeed/fail notifications
        gateway: Storage gateway to use instead of one built from the cloud provider
        node_version: Version compared with the ``nodeVersion`` of deployed configurations
        clock: Returns the current time in milliseconds, used as the version name
    """

    def __init__(
        self,
        settings: Optional[DeployerSettings] = None,
        executor: Optional[CommandExecutor] = None,
        progress: Optional[ProgressReporter] = None,
        gateway: Optional[StorageGateway] = None,
        node_version: str = __version__,
        clock: Callable[[], int] = _current_millis,
    ):
        self.settings = settings or DeployerSettings()
        self.executor = executor or CommandExecutor()
        self.progress = progress or LoggingProgressReporter()
        self.node_version = node_version
        self._gateway = gateway
        self._clock = clock
        self.last_outcome: Optional[DeployOutcome] = None

    def _gateway_for(self, cloud_provider: Any) -> StorageGateway:
        if self._gateway is not None:
            return self._gateway
        return get_storage_gateway(cloud_provider)

    # ------------------------------------------------------------------
    # Terraform helpers
    # ------------------------------------------------------------------

    def _terraform(
        self,
        cwd: str,
        command: str,
        args: List[CommandArg],
        options: Optional[List[str]] = None,
        ignore_error: bool = False,
    ) -> str:
        return self.executor.run(
            build_terraform_command(command, args, options), cwd=cwd, ignore_error=ignore_error
        )

    def _terraform_init(self, cwd: str, cloud_provider: Any, bucket: Bucket, deployment_path: str) -> None:
        provider = get_terraform_provider(cloud_provider.type)
        module_dir = Path(self.settings.terraform_dir) / cloud_provider.type
        self._terraform(
            cwd,
            "init",
            provider.init_arguments(bucket, deployment_path) + [("from-module", str(module_dir))],
        )

    def _bootstrap_state(self, gateway: StorageGateway, cloud_provider: Any, address_short: str, stage: str) -> None:
        name = state_bucket_name(address_short, stage)
        if gateway.backing_store_exists(name):
            logger.debug("Terraform state bucket '%s' already exists", name)
            return

        logger.info("Creating terraform state bucket '%s'", name)
        provider = get_terraform_provider(cloud_provider.type)
        with tempfile.TemporaryDirectory(prefix="airnode-state-") as cwd:
            self._terraform(cwd, "init", [("from-module", str(Path(self.settings.terraform_dir) / "state"))])
            self._terraform(
                cwd,
                "apply",
                provider.region_arguments(cloud_provider)
                + [
                    ("var", "airnode_address_short", address_short),
                    ("var", "stage", stage),
                    ("var", "state_bucket", name),
                    "auto-approve",
                    ("input", "false"),
                    "no-color",
                ],
            )

    # ------------------------------------------------------------------
    # Consistency checks
    # ------------------------------------------------------------------

    def _fetch_deployed_config(self, gateway: StorageGateway, bucket: Bucket, deployment_path: str) -> Dict[str, Any]:
        config_key = f"{deployment_path}/{CONFIG_FILENAME}"
        logger.debug("Fetching configuration file '%s'", config_key)
        content = gateway.get_file_from_bucket(bucket, config_key)
        try:
            raw = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ConfigValidationError(
                f"Failed to parse configuration file '{config_key}': {exc}", config_path=config_key
            ) from exc
        if not isinstance(raw, dict):
            raise ConfigValidationError(
                f"Configuration file '{config_key}' must contain a JSON object", config_path=config_key
            )
        return raw

    def _check_deployed_config(self, deployed: Dict[str, Any], region: str, action: str) -> None:
        """Refuse to touch a deployment made by another deployer version or in another region."""
        node_settings = deployed.get("nodeSettings") or {}
        deployed_version = node_settings.get("nodeVersion")
        deployed_region = (node_settings.get("cloudProvider") or {}).get("region")

        if deployed_version != self.node_version:
            raise ConsistencyError(
                f"Can't {action} an Airnode deployment with airnode-deployer of a different version. "
                f"Deployed version: {deployed_version}, airnode-deployer version: {self.node_version}",
                check_type="node_version",
                expected=self.node_version,
                actual=deployed_version,
            )
        if deployed_region != region:
            raise ConsistencyError(
                f"Can't change a region of an already deployed Airnode. "
                f"Current region: {deployed_region}, new region: {region}",
                check_type="region",
                expected=deployed_region,
                actual=region,
            )

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def _prepare_version(
        self,
        gateway: StorageGateway,
        config: AirnodeConfig,
        wallet: AirnodeWallet,
        config_path: Union[str, Path],
        secrets_path: Union[str, Path],
    ) -> Tuple[Bucket, str, str]:
        cloud_provider = config.cloud_provider
        stage = config.node_settings.stage
        address = wallet.address

        # Every stored version must carry this deployer's nodeVersion
        node_version = config.node_settings.node_version
        if node_version != self.node_version:
            raise ConsistencyError(
                f"Can't deploy an Airnode configuration made for a different airnode-deployer version. "
                f"Configuration version: {node_version}, airnode-deployer version: {self.node_version}",
                check_type="node_version",
                expected=self.node_version,
                actual=node_version,
            )

        if self.settings.state_bootstrap:
            self._bootstrap_state(gateway, cloud_provider, wallet.short_address, stage)

        logger.debug("Fetching Airnode bucket")
        bucket = gateway.get_airnode_bucket()
        if bucket is None:
            logger.debug("No Airnode bucket found, creating")
            bucket = gateway.create_airnode_bucket(cloud_provider)
        logger.debug("Using Airnode bucket '%s'", bucket.name)

        logger.debug("Fetching Airnode bucket content")
        structure = gateway.get_bucket_directory_structure(bucket)

        stage_path = f"{address}/{stage}"
        version = str(self._clock())
        deployment_path = f"{stage_path}/{version}"

        stage_directory = get_stage_directory(structure, address, stage)
        if stage_directory is not None:
            logger.debug("Deployment '%s' already exists", stage_path)

            missing = get_missing_files(structure).get(address, {}).get(stage, [])
            if missing:
                raise ConsistencyError(
                    f"Can't update an Airnode with missing files: {', '.join(missing)}. "
                    "Deployer commands may fail and manual removal may be necessary.",
                    check_type="missing_files",
                    actual=missing,
                )

            latest = get_latest_version(stage_directory)
            deployed = self._fetch_deployed_config(gateway, bucket, f"{stage_path}/{latest}")
            self._check_deployed_config(deployed, cloud_provider.region, "update")

            logger.debug("Copying terraform state file for new deployment %s", deployment_path)
            gateway.copy_file_in_bucket(
                bucket,
                f"{stage_path}/{latest}/{TF_STATE_FILENAME}",
                f"{deployment_path}/{TF_STATE_FILENAME}",
            )

        logger.debug("Storing configuration file for new deployment %s", deployment_path)
        gateway.store_file_to_bucket(bucket, f"{deployment_path}/{CONFIG_FILENAME}", str(config_path))
        logger.debug("Storing secrets file for new deployment %s", deployment_path)
        gateway.store_file_to_bucket(bucket, f"{deployment_path}/{SECRETS_FILENAME}", str(secrets_path))

        return bucket, version, deployment_path

    def _provision(
        self,
        config: AirnodeConfig,
        wallet: AirnodeWallet,
        bucket: Bucket,
        version: str,
        deployment_path: str,
        config_path: Union[str, Path],
        secrets_path: Union[str, Path],
    ) -> DeployOutcome:
        outcome = DeployOutcome(state=DeployState.PROVISIONING, version=version)
        cloud_provider = config.cloud_provider
        provider = get_terraform_provider(cloud_provider.type)

        try:
            logger.debug("Deploying Airnode via terraform recipes")
            with tempfile.TemporaryDirectory(prefix="airnode-") as cwd:
                self._terraform_init(cwd, cloud_provider, bucket, deployment_path)

                manage_args = provider.manage_arguments(cloud_provider, bucket, deployment_path)
                manage_args += common_manage_arguments(
                    airnode_address_short=wallet.short_address,
                    stage=config.node_settings.stage,
                    handler_dir=self.settings.handler_dir,
                    disable_concurrency_reservations=cloud_provider.disable_concurrency_reservations,
                    config_path=config_path,
                    secrets_path=secrets_path,
                    max_concurrency=config.max_concurrency,
                )
                manage_args += gateway_arguments(config.node_settings)

                import_options = provider.import_options(cloud_provider)
                if import_options:
                    self._terraform(cwd, "import", manage_args, import_options, ignore_error=True)

                self._terraform(cwd, "apply", manage_args + ["auto-approve"])
                stdout = self._terraform(cwd, "output", ["json", "no-color"])
            outcome.output = parse_terraform_output(stdout)
            outcome.state = DeployState.SUCCEEDED
        except Exception as exc:
            logger.debug("Provisioning failed: %s", exc)
            outcome.error = exc
        return outcome

    def _roll_back(
        self,
        outcome: DeployOutcome,
        wallet: AirnodeWallet,
        config: AirnodeConfig,
        receipt_path: Optional[Union[str, Path]],
    ) -> NoReturn:
        """Raise the deploy error, removing the deployment first when auto-remove is enabled."""
        deployment_error = outcome.error
        if not self.settings.auto_remove:
            outcome.state = DeployState.FAILED_AUTO_REMOVE_DISABLED
            logger.error(
                "Airnode deployment failed. Some resources may have been deployed to the cloud provider, "
                "use the remove command to make sure they are removed"
            )
            raise deployment_error

        outcome.state = DeployState.FAILED_AUTO_REMOVE_ENABLED
        logger.warning("Airnode deployment failed, removing deployed resources")
        try:
            if receipt_path is not None:
                self.remove_with_receipt(receipt_path)
            else:
                self.remove(wallet.address, config.node_settings.stage, config.cloud_provider)
        except Exception as removal_error:
            logger.error("Failed to remove the failed Airnode deployment")
            raise AggregateError(deployment_error, removal_error) from deployment_error

        logger.info("Removed the failed Airnode deployment")
        raise deployment_error

    def deploy(
        self,
        config: AirnodeConfig,
        wallet: AirnodeWallet,
        config_path: Union[str, Path],
        secrets_path: Union[str, Path],
        receipt_path: Optional[Union[str, Path]] = None,
    ) -> DeployOutcome:
        """Deploy a new version of an Airnode.

        Args:
            config: Validated configuration
            wallet: Address (and xpub) of the Airnode
            config_path: Local ``config.json`` uploaded with the version
            secrets_path: Local ``secrets.env`` uploaded with the version
            receipt_path: Where to write the receipt; no receipt is written when None

        Returns:
            Successful outcome with the gateway URLs from terraform

        Raises:
            ConsistencyError: The existing deployment can't be updated by this deployer
            ProviderError: A storage operation failed
            ProcessError: Terraform failed (after the rollback when auto-remove is enabled)
            AggregateError: Terraform failed and so did the rollback
        """
        cloud_provider = config.cloud_provider
        stage = config.node_settings.stage
        gateway = self._gateway_for(cloud_provider)
        description = f"Airnode {wallet.address} {stage} to {cloud_provider.type} {cloud_provider.region}"

        self.progress.start(f"Deploying {description}")
        self.last_outcome = DeployOutcome(state=DeployState.CHECKING_BACKING_STORE)
        try:
            bucket, version, deployment_path = self._prepare_version(
                gateway, config, wallet, config_path, secrets_path
            )
        except Exception:
            self.progress.fail(f"Failed deploying {description}")
            raise

        if receipt_path is not None:
            write_receipt(receipt_path, build_receipt(wallet, config, version, DeploymentStatus.attempted))

        outcome = self._provision(config, wallet, bucket, version, deployment_path, config_path, secrets_path)
        self.last_outcome = outcome

        if receipt_path is not None:
            status = DeploymentStatus.deployed if outcome.succeeded else DeploymentStatus.failed
            write_receipt(receipt_path, build_receipt(wallet, config, version, status, api=outcome.output))

        if outcome.succeeded:
            self.progress.succeed(f"Deployed {description}")
            return outcome

        self.progress.fail(f"Failed deploying {description}")
        self._roll_back(outcome, wallet, config, receipt_path)

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def remove(self, airnode_address: str, stage: str, cloud_provider: Any) -> None:
        """Destroy a deployment and delete its files from the bucket.

        Raises:
            NoBucketAvailableError: The account has no Airnode bucket
            DeploymentNotFoundError: The address/stage is not deployed
            ConsistencyError: The deployment was made by another deployer version or in another region
            ProcessError: Terraform failed
        """
        gateway = self._gateway_for(cloud_provider)
        description = f"Airnode {airnode_address} {stage} from {cloud_provider.type} {cloud_provider.region}"

        self.progress.start(f"Removing {description}")
        try:
            self._remove(gateway, airnode_address, stage, cloud_provider)
        except Exception:
            self.progress.fail(f"Failed to remove {description}")
            raise
        self.progress.succeed(f"Removed {description}")

    def _locate_stage(
        self, gateway: StorageGateway, provider_type: str, airnode_address: str, stage: str
    ) -> Tuple[Bucket, Directory]:
        bucket = gateway.get_airnode_bucket()
        if bucket is None:
            raise NoBucketAvailableError(
                f"No Airnode bucket available on {provider_type.upper()}", provider=provider_type
            )

        structure = gateway.get_bucket_directory_structure(bucket)
        stage_directory = get_stage_directory(structure, airnode_address, stage)
        if stage_directory is None:
            raise DeploymentNotFoundError(airnode_address, stage)
        return bucket, stage_directory

    def _remove(self, gateway: StorageGateway, airnode_address: str, stage: str, cloud_provider: Any) -> None:
        bucket, stage_directory = self._locate_stage(gateway, cloud_provider.type, airnode_address, stage)

        latest = get_latest_version(stage_directory)
        deployment_path = f"{airnode_address}/{stage}/{latest}"
        deployed = self._fetch_deployed_config(gateway, bucket, deployment_path)
        self._check_deployed_config(deployed, cloud_provider.region, "remove")

        logger.debug("Removing Airnode via terraform recipes")
        provider = get_terraform_provider(cloud_provider.type)
        with tempfile.TemporaryDirectory(prefix="airnode-") as cwd:
            self._terraform_init(cwd, cloud_provider, bucket, deployment_path)
            destroy_args = provider.manage_arguments(cloud_provider, bucket, deployment_path)
            destroy_args += common_manage_arguments(
                airnode_address_short=short_airnode_address(airnode_address),
                stage=stage,
                handler_dir=self.settings.handler_dir,
                disable_concurrency_reservations=cloud_provider.disable_concurrency_reservations,
            )
            self._terraform(cwd, "destroy", destroy_args + ["auto-approve"])

        # Terraform removes the uploaded handler archives, the listing is stale
        logger.debug("Refreshing Airnode bucket content")
        structure = gateway.get_bucket_directory_structure(bucket)
        execute_removal_plan(gateway, bucket, plan_removal(structure, airnode_address, stage))

    def remove_with_receipt(self, receipt_path: Union[str, Path]) -> None:
        """Remove the deployment described by a receipt file."""
        receipt = read_receipt(receipt_path)
        self.remove(
            receipt.airnode_wallet.airnode_address,
            receipt.deployment.stage,
            receipt.deployment.cloud_provider,
        )

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def _describe(
        self, gateway: StorageGateway, bucket: Bucket, airnode_address: str, stage: str, stage_directory: Directory
    ) -> DeploymentInfo:
        versions = list(reversed(sort_versions(stage_directory.children)))
        if not versions:
            raise MalformedTreeError(
                f"Invalid directory structure, '{stage_directory.bucket_key}' should not be empty",
                bucket_key=stage_directory.bucket_key,
            )

        deployed = self._fetch_deployed_config(gateway, bucket, f"{airnode_address}/{stage}/{versions[0]}")
        node_settings = deployed.get("nodeSettings") or {}
        try:
            cloud_provider = parse_cloud_provider(node_settings.get("cloudProvider") or {})
        except ValidationError as exc:
            raise ConfigValidationError(
                f"Invalid cloud provider in deployed configuration of '{airnode_address}/{stage}': {exc}",
                key="nodeSettings.cloudProvider",
            ) from exc

        return DeploymentInfo(
            airnode_address=airnode_address,
            stage=stage,
            cloud_provider=cloud_provider,
            node_version=node_settings.get("nodeVersion"),
            versions=versions,
        )

    def list_deployments(self, cloud_provider: Any) -> List[DeploymentInfo]:
        """List every complete deployment in the provider's Airnode bucket.

        Deployments whose latest version is missing files, or whose
        configuration can't be read, are logged and skipped.

        Args:
            cloud_provider: Provider model or provider type
        """
        provider_type = _provider_type(cloud_provider)
        gateway = self._gateway_for(cloud_provider)

        bucket = gateway.get_airnode_bucket()
        if bucket is None:
            logger.debug("No deployments available on %s", provider_type.upper())
            return []

        structure = gateway.get_bucket_directory_structure(bucket)
        missing = get_missing_files(structure)
        deployments: List[DeploymentInfo] = []

        for address, address_item in structure.items():
            if not isinstance(address_item, Directory):
                logger.warning(
                    "Invalid item in bucket '%s' (%s) with key '%s'. Skipping.",
                    bucket.name, provider_type.upper(), address_item.bucket_key,
                )
                continue

            for stage, stage_item in address_item.children.items():
                if not isinstance(stage_item, Directory) or not stage_item.children:
                    logger.warning(
                        "Invalid item in bucket '%s' (%s) with key '%s'. Skipping.",
                        bucket.name, provider_type.upper(), stage_item.bucket_key,
                    )
                    continue
                if missing.get(address, {}).get(stage):
                    logger.debug("Deployment '%s/%s' is missing files. Skipping.", address, stage)
                    continue

                try:
                    deployments.append(self._describe(gateway, bucket, address, stage, stage_item))
                except (ConfigValidationError, ProviderError) as exc:
                    logger.warning("Failed to read deployment '%s/%s': %s. Skipping.", address, stage, exc)

        deployments.sort(key=lambda info: (info.airnode_address.lower(), info.stage))
        return deployments

    def deployment_info(self, airnode_address: str, stage: str, cloud_provider: Any) -> DeploymentInfo:
        """Describe one deployment and all of its versions.

        Raises:
            NoBucketAvailableError: The account has no Airnode bucket
            DeploymentNotFoundError: The address/stage is not deployed
            ConsistencyError: The latest version is missing files
        """
        gateway = self._gateway_for(cloud_provider)
        bucket, stage_directory = self._locate_stage(
            gateway, _provider_type(cloud_provider), airnode_address, stage
        )
        self._check_complete(stage_directory, airnode_address, stage)
        return self._describe(gateway, bucket, airnode_address, stage, stage_directory)

    def _check_complete(self, stage_directory: Directory, airnode_address: str, stage: str) -> None:
        latest = get_latest_version(stage_directory)
        version_item = stage_directory.children[latest]
        present = version_item.children if isinstance(version_item, Directory) else {}
        absent = [
            f"{airnode_address}/{stage}/{latest}/{filename}"
            for filename in MANDATORY_DEPLOYMENT_FILES
            if filename not in present
        ]
        if absent:
            raise ConsistencyError(
                f"Deployment '{airnode_address}/{stage}' is missing files: {', '.join(absent)}",
                check_type="missing_files",
                actual=absent,
            )

    def fetch_files(
        self,
        airnode_address: str,
        stage: str,
        cloud_provider: Any,
        output_dir: Union[str, Path],
        version: Optional[str] = None,
    ) -> Path:
        """Download ``config.json`` and ``secrets.env`` of a deployment version as a zip archive.

        Args:
            airnode_address: Airnode address
            stage: Deployment stage
            cloud_provider: Provider model or provider type
            output_dir: Existing, writable directory for the archive
            version: Version to download; the latest one when None

        Returns:
            Path of the written ``<short address>-<stage>-<version>.zip``

        Raises:
            DeploymentNotFoundError: No such deployment or version
            ConfigValidationError: The output directory is not writable
        """
        output_dir = Path(output_dir)
        if not output_dir.is_dir() or not os.access(output_dir, os.W_OK):
            raise ConfigValidationError(
                f"Can't write into an output directory '{output_dir}'", config_path=str(output_dir)
            )

        gateway = self._gateway_for(cloud_provider)
        description = f"files of Airnode {airnode_address} {stage}"
        self.progress.start(f"Fetching {description}")
        try:
            bucket, stage_directory = self._locate_stage(
                gateway, _provider_type(cloud_provider), airnode_address, stage
            )
            if version is None:
                version = get_latest_version(stage_directory)
            elif version not in stage_directory.children:
                raise DeploymentNotFoundError(airnode_address, stage, version)

            deployment_path = f"{airnode_address}/{stage}/{version}"
            config_content = gateway.get_file_from_bucket(bucket, f"{deployment_path}/{CONFIG_FILENAME}")
            secrets_content = gateway.get_file_from_bucket(bucket, f"{deployment_path}/{SECRETS_FILENAME}")

            archive_path = output_dir / f"{short_airnode_address(airnode_address)}-{stage}-{version}.zip"
            with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                archive.writestr(CONFIG_FILENAME, config_content)
                archive.writestr(SECRETS_FILENAME, secrets_content)
        except Exception:
            self.progress.fail(f"Failed fetching {description}")
            raise

        self.progress.succeed(f"Files downloaded as '{archive_path}'")
        return archive_path


def _provider_type(cloud_provider: Any) -> str:
    return CloudProviderType(getattr(cloud_provider, "type", cloud_provider)).value
