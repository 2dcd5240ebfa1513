"""Tests for terraform argument and command construction."""

import os

import pytest

from deployer.config import GatewaySettings
from deployer.exceptions import ProcessError
from deployer.providers import AwsCloudProvider, CloudProviderType, GcpCloudProvider
from deployer.storage.base import Bucket
from deployer.terraform import (
    NULL_VALUE,
    TERRAFORM_PROVIDERS,
    AwsTerraformProvider,
    GcpTerraformProvider,
    build_terraform_command,
    common_manage_arguments,
    format_terraform_arguments,
    gateway_arguments,
    get_terraform_provider,
    parse_terraform_output,
    state_bucket_name,
)

DEPLOYMENT_PATH = "0xA30CA71Ba54E83127214D3271aEA8F5D6bD4Dace/dev/1662559204554"


class TestFormatting:
    """Tests for rendering argument data into flags."""

    def test_argument_shapes(self):
        args = ["no-color", ("input", "false"), ("var", "stage", "dev")]

        assert format_terraform_arguments(args) == ["-no-color", "-input=false", '-var="stage=dev"']

    def test_empty(self):
        assert format_terraform_arguments([]) == []

    def test_unsupported_argument(self):
        with pytest.raises(ValueError, match="Unsupported terraform argument"):
            format_terraform_arguments([("a", "b", "c", "d")])

    def test_build_command(self):
        command = build_terraform_command(
            "import",
            [("var", "gcp_region", "us-east1"), "no-color"],
            ["module.startCoordinator.google_app_engine_application.app[0]", "airnode-project"],
        )

        assert command == (
            'terraform import -var="gcp_region=us-east1" -no-color '
            "module.startCoordinator.google_app_engine_application.app[0] airnode-project"
        )

    def test_build_command_without_arguments(self):
        assert build_terraform_command("output") == "terraform output"
        assert build_terraform_command("output", ["json", "no-color"]) == "terraform output -json -no-color"


class TestParseOutput:
    def test_all_gateways(self):
        stdout = (
            '{"http_gateway_url": {"value": "https://a.example/http"},'
            ' "http_signed_data_gateway_url": {"value": "https://a.example/signed"},'
            ' "oev_gateway_url": {"value": "https://a.example/oev"}}'
        )

        assert parse_terraform_output(stdout) == {
            "httpGatewayUrl": "https://a.example/http",
            "httpSignedDataGatewayUrl": "https://a.example/signed",
            "oevGatewayUrl": "https://a.example/oev",
        }

    def test_missing_outputs_are_omitted(self):
        assert parse_terraform_output('{"http_gateway_url": {"value": "https://a"}}') == {
            "httpGatewayUrl": "https://a"
        }
        assert parse_terraform_output("{}") == {}
        assert parse_terraform_output("") == {}

    def test_invalid_json(self):
        with pytest.raises(ProcessError, match="Failed to parse terraform output"):
            parse_terraform_output("not json")


class TestProviders:
    """Tests for the per-provider argument sets."""

    def test_registry_is_exhaustive(self):
        assert set(TERRAFORM_PROVIDERS) == set(CloudProviderType)
        assert isinstance(get_terraform_provider("aws"), AwsTerraformProvider)
        assert isinstance(get_terraform_provider(CloudProviderType.gcp), GcpTerraformProvider)

    def test_aws_arguments(self, bucket):
        provider = get_terraform_provider("aws")
        cloud_provider = AwsCloudProvider(region="eu-central-1")

        assert provider.manage_arguments(cloud_provider, bucket, DEPLOYMENT_PATH) == [
            ("var", "aws_region", "eu-central-1")
        ]
        assert provider.init_arguments(bucket, DEPLOYMENT_PATH) == [
            ("backend-config", "region", "us-east-1"),
            ("backend-config", "bucket", "airnode-123456789abc"),
            ("backend-config", "key", f"{DEPLOYMENT_PATH}/default.tfstate"),
        ]
        assert provider.import_options(cloud_provider) == []

    def test_gcp_arguments(self):
        provider = get_terraform_provider("gcp")
        cloud_provider = GcpCloudProvider(region="us-east1", projectId="airnode-project")
        bucket = Bucket(name="airnode-123456789abc", region="us-east1")

        assert provider.region_arguments(cloud_provider) == [
            ("var", "gcp_region", "us-east1"),
            ("var", "gcp_project", "airnode-project"),
        ]
        assert provider.manage_arguments(cloud_provider, bucket, DEPLOYMENT_PATH) == [
            ("var", "gcp_region", "us-east1"),
            ("var", "gcp_project", "airnode-project"),
            ("var", "airnode_bucket", "airnode-123456789abc"),
            ("var", "deployment_bucket_dir", DEPLOYMENT_PATH),
        ]
        assert provider.init_arguments(bucket, DEPLOYMENT_PATH) == [
            ("backend-config", "bucket", "airnode-123456789abc"),
            ("backend-config", "prefix", DEPLOYMENT_PATH),
        ]
        assert provider.import_options(cloud_provider) == [
            "module.startCoordinator.google_app_engine_application.app[0]",
            "airnode-project",
        ]


class TestCommonArguments:
    def test_with_files(self, tmp_path):
        config_path = tmp_path / "config.json"
        secrets_path = tmp_path / "secrets.env"

        args = common_manage_arguments(
            "a30ca71", "dev", "/handlers", False, config_path, secrets_path, max_concurrency=100
        )

        assert args == [
            ("var", "airnode_address_short", "a30ca71"),
            ("var", "stage", "dev"),
            ("var", "configuration_file", os.path.abspath(config_path)),
            ("var", "secrets_file", os.path.abspath(secrets_path)),
            ("var", "handler_dir", "/handlers"),
            ("var", "disable_concurrency_reservation", "false"),
            ("var", "max_concurrency", "100"),
            ("input", "false"),
            "no-color",
        ]

    def test_without_files(self):
        args = common_manage_arguments("a30ca71", "dev", "/handlers", True)

        assert ("var", "configuration_file", NULL_VALUE) in args
        assert ("var", "secrets_file", NULL_VALUE) in args
        assert ("var", "disable_concurrency_reservation", "true") in args
        assert not any(arg[1] == "max_concurrency" for arg in args if isinstance(arg, tuple))

    def test_relative_paths_are_made_absolute(self):
        args = common_manage_arguments("a30ca71", "dev", "/handlers", False, "config/config.json", "config/secrets.env")

        assert ("var", "configuration_file", os.path.abspath("config/config.json")) in args


class TestGatewayArguments:
    def test_disabled_gateways(self, aws_config):
        assert gateway_arguments(aws_config.node_settings) == []

    def test_enabled_gateways(self, aws_config):
        node_settings = aws_config.node_settings.model_copy(
            update={
                "http_gateway": GatewaySettings(enabled=True, maxConcurrency=20),
                "oev_gateway": GatewaySettings(enabled=True, apiKey="secret-key"),
            }
        )

        assert gateway_arguments(node_settings) == [
            ("var", "http_gateway_enabled", "true"),
            ("var", "http_max_concurrency", "20"),
            ("var", "oev_gateway_enabled", "true"),
            ("var", "oev_gateway_api_key", "secret-key"),
        ]

    def test_signed_data_gateway(self, aws_config):
        node_settings = aws_config.node_settings.model_copy(
            update={"http_signed_data_gateway": GatewaySettings(enabled=True, maxConcurrency=5, apiKey="k")}
        )

        assert gateway_arguments(node_settings) == [
            ("var", "http_signed_data_gateway_enabled", "true"),
            ("var", "http_signed_data_max_concurrency", "5"),
            ("var", "http_signed_data_gateway_api_key", "k"),
        ]


def test_state_bucket_name():
    assert state_bucket_name("a30ca71", "dev") == "airnode-a30ca71-dev-terraform"
