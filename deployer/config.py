"""Configuration loading for airnode-deployer.

Three inputs are read here:

- ``config.json``: the Airnode node configuration. Only the parts the
  deployer acts on are modelled (``nodeSettings`` and the ``chains``
  concurrency limits); everything else is passed through untouched.
- ``secrets.env``: ``KEY=value`` pairs interpolated into ``config.json``
  wherever ``${KEY}`` appears.
- An optional deployer settings YAML file (terraform recipe location,
  handler artifacts, rollback behaviour) overridable by
  ``AIRNODE_DEPLOYER_*`` environment variables.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from deployer.exceptions import ConfigValidationError
from deployer.providers import AwsCloudProvider, CloudProvider, GcpCloudProvider

logger = logging.getLogger(__name__)

_SECRET_PATTERN = re.compile(r"\$\{([^}]+)\}")
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")

SETTINGS_ENV_PREFIX = "AIRNODE_DEPLOYER_"
_PACKAGE_ROOT = Path(__file__).resolve().parent.parent


# ---------------------------------------------------------------------------
# Node configuration
# ---------------------------------------------------------------------------


class GatewaySettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    enabled: bool = False
    max_concurrency: Optional[int] = Field(default=None, alias="maxConcurrency", ge=1)
    api_key: Optional[str] = Field(default=None, alias="apiKey")


class ChainSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    max_concurrency: int = Field(alias="maxConcurrency", ge=1)


class NodeSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    cloud_provider: CloudProvider = Field(alias="cloudProvider")
    stage: str = Field(min_length=1)
    node_version: str = Field(alias="nodeVersion", min_length=1)
    http_gateway: GatewaySettings = Field(default_factory=GatewaySettings, alias="httpGateway")
    http_signed_data_gateway: GatewaySettings = Field(
        default_factory=GatewaySettings, alias="httpSignedDataGateway"
    )
    oev_gateway: GatewaySettings = Field(default_factory=GatewaySettings, alias="oevGateway")

    @model_validator(mode="before")
    @classmethod
    def _reject_local_provider(cls, data: Any) -> Any:
        if isinstance(data, dict):
            provider = data.get("cloudProvider") or data.get("cloud_provider") or {}
            if isinstance(provider, dict) and provider.get("type") == "local":
                raise ValueError("Deploying Airnode locally is not supported by airnode-deployer")
        return data


class AirnodeConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    node_settings: NodeSettings = Field(alias="nodeSettings")
    chains: List[ChainSettings] = Field(default_factory=list)

    @property
    def cloud_provider(self) -> Union[AwsCloudProvider, GcpCloudProvider]:
        return self.node_settings.cloud_provider

    @property
    def max_concurrency(self) -> Optional[int]:
        """Total concurrency across chains, or None when no chain is configured."""
        if not self.chains:
            return None
        return sum(chain.max_concurrency for chain in self.chains)


def load_secrets(path: Union[str, Path]) -> Dict[str, str]:
    """Parse a ``secrets.env`` file.

    Raises:
        ConfigValidationError: the file does not exist
    """
    secrets_path = Path(path)
    if not secrets_path.is_file():
        raise ConfigValidationError(f"Secrets file not found: {path}", config_path=str(path))

    values = dotenv_values(secrets_path)
    secrets = {key: value for key, value in values.items() if value is not None}
    logger.debug("Loaded %d secrets from %s", len(secrets), path)
    return secrets


def interpolate_secrets(value: Any, secrets: Dict[str, str]) -> Any:
    """Recursively replace ``${NAME}`` references with values from ``secrets``.

    Raises:
        ConfigValidationError: a referenced secret is not defined
    """
    if isinstance(value, str):

        def replacer(match: re.Match) -> str:
            name = match.group(1)
            if name not in secrets:
                raise ConfigValidationError(
                    f"Secret '{name}' is referenced in the configuration but not defined",
                    key=name,
                )
            return secrets[name]

        return _SECRET_PATTERN.sub(replacer, value)

    if isinstance(value, dict):
        return {k: interpolate_secrets(v, secrets) for k, v in value.items()}

    if isinstance(value, list):
        return [interpolate_secrets(item, secrets) for item in value]

    return value


def parse_config(raw: Dict[str, Any], secrets: Optional[Dict[str, str]] = None) -> AirnodeConfig:
    """Interpolate secrets into a raw ``config.json`` object and validate it.

    Raises:
        ConfigValidationError: missing secret or invalid ``nodeSettings``
    """
    if not isinstance(raw, dict):
        raise ConfigValidationError("Configuration must be a JSON object")

    interpolated = interpolate_secrets(raw, secrets or {})
    try:
        return AirnodeConfig.model_validate(interpolated)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigValidationError(
            f"Invalid configuration: {first.get('msg')}", key=location or None
        ) from exc


def load_config(path: Union[str, Path], secrets: Optional[Dict[str, str]] = None) -> AirnodeConfig:
    """Read ``config.json`` from disk, interpolate secrets and validate it.

    Args:
        path: Path to the configuration file
        secrets: Values for ``${NAME}`` references, usually from :func:`load_secrets`

    Returns:
        Validated configuration

    Raises:
        ConfigValidationError: unreadable file, invalid JSON or invalid content
    """
    config_path = Path(path)
    logger.info("Loading configuration from %s", config_path)
    if not config_path.is_file():
        raise ConfigValidationError(f"Configuration file not found: {path}", config_path=str(path))

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigValidationError(
            f"Failed to parse configuration file: {exc}", config_path=str(path)
        ) from exc

    try:
        return parse_config(raw, secrets)
    except ConfigValidationError as exc:
        exc.details.setdefault("config_path", str(path))
        raise


# ---------------------------------------------------------------------------
# Airnode wallet
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AirnodeWallet:
    """Identity of the Airnode being managed.

    Wallet derivation from a mnemonic happens outside the deployer; only the
    resulting address and extended public key are needed here.
    """

    address: str
    xpub: Optional[str] = None

    @property
    def short_address(self) -> str:
        return short_airnode_address(self.address)


def short_airnode_address(address: str) -> str:
    """First 7 hex characters of the address, lowercased and without ``0x``."""
    if address[:2].lower() == "0x":
        address = address[2:]
    return address[:7].lower()


# ---------------------------------------------------------------------------
# Deployer settings
# ---------------------------------------------------------------------------


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ``${VAR}`` and ``${VAR:default}`` from the environment.

    Raises:
        ConfigValidationError: a variable is unset and has no default
    """
    if isinstance(value, str):

        def replacer(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2)

            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise ConfigValidationError(
                f"Environment variable '{var_name}' is not set and no default provided",
                key=var_name,
            )

        return _ENV_VAR_PATTERN.sub(replacer, value)

    if isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [substitute_env_vars(item) for item in value]

    return value


class DeployerSettings(BaseModel):
    """Tunables of the deployer itself, independent of any Airnode."""

    model_config = ConfigDict(extra="forbid")

    terraform_dir: Path = _PACKAGE_ROOT / "terraform"
    handler_dir: Path = _PACKAGE_ROOT / "handlers"
    auto_remove: bool = True
    state_bootstrap: bool = True


def _read_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    settings_path = Path(path)
    if not settings_path.is_file():
        raise ConfigValidationError(f"Settings file not found: {path}", config_path=str(path))

    try:
        with open(settings_path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(
            f"Invalid YAML in settings file: {exc}", config_path=str(path)
        ) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigValidationError(
            "Settings must be a YAML dictionary/object", config_path=str(path)
        )
    return data


def load_settings(path: Optional[Union[str, Path]] = None) -> DeployerSettings:
    """Load deployer settings from YAML and the environment.

    ``AIRNODE_DEPLOYER_<KEY>`` environment variables take precedence over the
    file; both fall back to the built-in defaults.

    Raises:
        ConfigValidationError: unreadable file or invalid values
    """
    data: Dict[str, Any] = {}
    if path:
        logger.info("Loading deployer settings from %s", path)
        data = substitute_env_vars(_read_yaml(path))

    for name in DeployerSettings.model_fields:
        env_value = os.environ.get(f"{SETTINGS_ENV_PREFIX}{name.upper()}")
        if env_value is not None:
            data[name] = env_value

    try:
        return DeployerSettings.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigValidationError(
            f"Invalid deployer settings: {first.get('msg')}",
            config_path=str(path) if path else None,
            key=location or None,
        ) from exc
