"""Receipt files describing a deployment.

A receipt is written as soon as a deploy allocates a new version and
rewritten once terraform finishes, so even a crashed deploy leaves enough
information behind to remove whatever was provisioned.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from deployer.config import AirnodeConfig, AirnodeWallet
from deployer.exceptions import ConfigValidationError
from deployer.providers import CloudProvider

logger = logging.getLogger(__name__)


class DeploymentStatus(str, Enum):
    attempted = "attempted"
    deployed = "deployed"
    failed = "failed"


class ReceiptWallet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    airnode_address: str = Field(alias="airnodeAddress")
    airnode_address_short: str = Field(alias="airnodeAddressShort")
    airnode_xpub: Optional[str] = Field(default=None, alias="airnodeXpub")


class ReceiptDeployment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    airnode_address_short: str = Field(alias="airnodeAddressShort")
    cloud_provider: CloudProvider = Field(alias="cloudProvider")
    stage: str
    node_version: str = Field(alias="nodeVersion")
    timestamp: str
    version: Optional[str] = None
    status: DeploymentStatus = DeploymentStatus.attempted


class Receipt(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    airnode_wallet: ReceiptWallet = Field(alias="airnodeWallet")
    deployment: ReceiptDeployment
    api: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


def build_receipt(
    wallet: AirnodeWallet,
    config: AirnodeConfig,
    version: Optional[str],
    status: DeploymentStatus = DeploymentStatus.attempted,
    api: Optional[Dict[str, Any]] = None,
    timestamp: Optional[datetime] = None,
) -> Receipt:
    node_settings = config.node_settings
    return Receipt(
        airnode_wallet=ReceiptWallet(
            airnode_address=wallet.address,
            airnode_address_short=wallet.short_address,
            airnode_xpub=wallet.xpub,
        ),
        deployment=ReceiptDeployment(
            airnode_address_short=wallet.short_address,
            cloud_provider=node_settings.cloud_provider,
            stage=node_settings.stage,
            node_version=node_settings.node_version,
            timestamp=(timestamp or datetime.now(timezone.utc)).isoformat(),
            version=version,
            status=status,
        ),
        api=dict(api or {}),
    )


def write_receipt(path: Union[str, Path], receipt: Receipt) -> None:
    receipt_path = Path(path)
    receipt_path.parent.mkdir(parents=True, exist_ok=True)
    receipt_path.write_text(json.dumps(receipt.to_dict(), indent=2) + "\n", encoding="utf-8")
    logger.info(
        "Wrote receipt file %s (status: %s)", receipt_path, receipt.deployment.status.value
    )


def read_receipt(path: Union[str, Path]) -> Receipt:
    """Load and validate a receipt file.

    Raises:
        ConfigValidationError: missing file, invalid JSON or missing fields
    """
    receipt_path = Path(path)
    if not receipt_path.is_file():
        raise ConfigValidationError(f"Receipt file not found: {path}", config_path=str(path))

    try:
        data = json.loads(receipt_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigValidationError(
            f"Failed to parse receipt file: {exc}", config_path=str(path)
        ) from exc

    try:
        return Receipt.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigValidationError(
            f"Invalid receipt file: {first.get('msg')}",
            config_path=str(path),
            key=location or None,
        ) from exc
