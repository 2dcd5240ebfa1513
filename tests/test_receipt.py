"""Tests for receipt files."""

import json
from datetime import datetime, timezone

import pytest

from deployer.config import AirnodeWallet
from deployer.exceptions import ConfigValidationError
from deployer.providers import GcpCloudProvider
from deployer.receipt import DeploymentStatus, build_receipt, read_receipt, write_receipt

from tests.conftest import AIRNODE_ADDRESS


@pytest.fixture
def receipt(wallet, aws_config):
    return build_receipt(
        wallet,
        aws_config,
        "1662559204554",
        DeploymentStatus.deployed,
        api={"httpGatewayUrl": "https://gateway.example/http"},
        timestamp=datetime(2022, 9, 7, 14, 0, tzinfo=timezone.utc),
    )


def test_receipt_layout(receipt, wallet):
    data = receipt.to_dict()

    assert data == {
        "airnodeWallet": {
            "airnodeAddress": AIRNODE_ADDRESS,
            "airnodeAddressShort": "a30ca71",
            "airnodeXpub": wallet.xpub,
        },
        "deployment": {
            "airnodeAddressShort": "a30ca71",
            "cloudProvider": {"type": "aws", "region": "us-east-1", "disableConcurrencyReservations": False},
            "stage": "dev",
            "nodeVersion": receipt.deployment.node_version,
            "timestamp": "2022-09-07T14:00:00+00:00",
            "version": "1662559204554",
            "status": "deployed",
        },
        "api": {"httpGatewayUrl": "https://gateway.example/http"},
    }


def test_missing_xpub_is_omitted(aws_config):
    data = build_receipt(AirnodeWallet(address=AIRNODE_ADDRESS), aws_config, None).to_dict()

    assert "airnodeXpub" not in data["airnodeWallet"]
    assert data["deployment"]["status"] == "attempted"
    assert data["api"] == {}


def test_write_and_read(receipt, tmp_path):
    path = tmp_path / "output" / "receipt.json"

    write_receipt(path, receipt)

    assert read_receipt(path).to_dict() == receipt.to_dict()
    assert json.loads(path.read_text(encoding="utf-8"))["deployment"]["status"] == "deployed"


def test_rewrite_replaces_content(receipt, wallet, aws_config, tmp_path):
    path = tmp_path / "receipt.json"
    write_receipt(path, build_receipt(wallet, aws_config, "1662559204554"))

    write_receipt(path, receipt)

    assert read_receipt(path).deployment.status == DeploymentStatus.deployed


def test_gcp_provider_round_trip(wallet, gcp_config, tmp_path):
    path = tmp_path / "receipt.json"
    write_receipt(path, build_receipt(wallet, gcp_config, "1"))

    provider = read_receipt(path).deployment.cloud_provider

    assert isinstance(provider, GcpCloudProvider)
    assert provider.project_id == "airnode-project"


def test_read_missing_file(tmp_path):
    with pytest.raises(ConfigValidationError, match="Receipt file not found"):
        read_receipt(tmp_path / "receipt.json")


def test_read_invalid_json(tmp_path):
    path = tmp_path / "receipt.json"
    path.write_text("{", encoding="utf-8")

    with pytest.raises(ConfigValidationError, match="Failed to parse receipt file"):
        read_receipt(path)


def test_read_incomplete_receipt(tmp_path):
    path = tmp_path / "receipt.json"
    path.write_text(json.dumps({"airnodeWallet": {"airnodeAddress": AIRNODE_ADDRESS}}), encoding="utf-8")

    with pytest.raises(ConfigValidationError, match="Invalid receipt file"):
        read_receipt(path)
