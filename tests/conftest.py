"""Pytest configuration and fixtures."""

import json
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from deployer._version import __version__  # noqa: E402
from deployer.config import AirnodeWallet, DeployerSettings, parse_config  # noqa: E402
from deployer.directory import build_directory_structure  # noqa: E402
from deployer.storage.base import Bucket, StorageGateway  # noqa: E402

AIRNODE_ADDRESS = "0xA30CA71Ba54E83127214D3271aEA8F5D6bD4Dace"
OTHER_AIRNODE_ADDRESS = "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6"

BUCKET_KEYS = [
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662557983568/",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662557983568/secrets.env",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662557983568/default.tfstate",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662557983568/config.json",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662558010204/",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662558010204/secrets.env",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662558010204/default.tfstate",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662558010204/config.json",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662557994854/",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662557994854/secrets.env",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662557994854/default.tfstate",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/dev/1662557994854/config.json",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/prod/",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/prod/1662558071950/",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/prod/1662558071950/secrets.env",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/prod/1662558071950/default.tfstate",
    "0xd0624E6C2C8A1DaEdE9Fa7E9C409167ed5F256c6/prod/1662558071950/config.json",
    "0x04783518D380B704978Ed7f560d952fe4EdDd196/",
    "0x04783518D380B704978Ed7f560d952fe4EdDd196/prod/",
    "0xfb87102cdabadf905321521ba0b3cbf74ad09c5d/",
    "0xdCb725091c67fC9f0fB78Bb2BB86d8d2DAC12C5a",
    "0xA30CA71Ba54E83127214D3271aEA8F5D6bD4Dace/",
    "0xA30CA71Ba54E83127214D3271aEA8F5D6bD4Dace/dev/",
    "0xA30CA71Ba54E83127214D3271aEA8F5D6bD4Dace/dev/1662559204554/",
    "0xA30CA71Ba54E83127214D3271aEA8F5D6bD4Dace/dev/1662559204554/secrets.env",
    "0xA30CA71Ba54E83127214D3271aEA8F5D6bD4Dace/dev/1662559204554/default.tfstate",
    "0xA30CA71Ba54E83127214D3271aEA8F5D6bD4Dace/dev/1662559204554/config.json",
    "0x04f6CAACE10b89d23Ad0ce0B2ceDb6DF8d2Ec043/",
    "0x04f6CAACE10b89d23Ad0ce0B2ceDb6DF8d2Ec043/devFile",
    "0x04f6CAACE10b89d23Ad0ce0B2ceDb6DF8d2Ec043/devEmpty/",
]


def version_keys(address, stage, version):
    prefix = f"{address}/{stage}/{version}/"
    return [prefix, f"{prefix}secrets.env", f"{prefix}default.tfstate", f"{prefix}config.json"]


def make_raw_config(provider="aws", region="us-east-1", node_version=__version__, stage="dev", **node_settings):
    cloud_provider = {"type": provider, "region": region, "disableConcurrencyReservations": False}
    if provider == "gcp":
        cloud_provider["projectId"] = "airnode-project"
    settings = {
        "cloudProvider": cloud_provider,
        "stage": stage,
        "nodeVersion": node_version,
        "httpGateway": {"enabled": False},
        "httpSignedDataGateway": {"enabled": False},
        "oevGateway": {"enabled": False},
    }
    settings.update(node_settings)
    return {"chains": [{"id": "1", "maxConcurrency": 100}], "nodeSettings": settings}


@pytest.fixture
def bucket_keys():
    """Bucket listing with several addresses, stages and corrupt entries."""
    return list(BUCKET_KEYS)


@pytest.fixture
def directory_structure(bucket_keys):
    return build_directory_structure(bucket_keys)


@pytest.fixture
def bucket():
    return Bucket(name="airnode-123456789abc", region="us-east-1")


@pytest.fixture
def wallet():
    return AirnodeWallet(address=AIRNODE_ADDRESS, xpub="xpub6C8tvRgYkjNVaGMtpyZf4deBcUQHf7vgWUraVxY6gYiz")


@pytest.fixture
def aws_config():
    return parse_config(make_raw_config("aws"))


@pytest.fixture
def gcp_config():
    return parse_config(make_raw_config("gcp", region="us-east1"))


@pytest.fixture
def config_files(tmp_path):
    """Write a config.json and secrets.env pair and return their paths."""

    def _write(raw=None, secrets="AIRNODE_ADDRESS=0xA30CA71Ba54E83127214D3271aEA8F5D6bD4Dace\n"):
        config_path = tmp_path / "config.json"
        secrets_path = tmp_path / "secrets.env"
        config_path.write_text(json.dumps(raw or make_raw_config()), encoding="utf-8")
        secrets_path.write_text(secrets, encoding="utf-8")
        return config_path, secrets_path

    return _write


@pytest.fixture
def settings(tmp_path):
    return DeployerSettings(
        terraform_dir=tmp_path / "terraform",
        handler_dir=tmp_path / "handlers",
        auto_remove=False,
        state_bootstrap=False,
    )


@pytest.fixture
def mock_gateway(bucket):
    """Storage gateway double with an existing, empty Airnode bucket."""
    gateway = MagicMock(spec=StorageGateway)
    gateway.get_airnode_bucket.return_value = bucket
    gateway.get_bucket_directory_structure.return_value = {}
    gateway.backing_store_exists.return_value = True
    return gateway
