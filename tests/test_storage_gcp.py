"""Unit tests for the Cloud Storage gateway with a mocked client."""

from unittest.mock import MagicMock, call

import pytest
from google.api_core import exceptions as gcs_exceptions
from tenacity import wait_none

from deployer.directory import Directory, File
from deployer.exceptions import MultipleBucketsFoundError, ProviderError
from deployer.providers import GcpCloudProvider
from deployer.storage import Bucket, GcpStorageGateway, get_storage_gateway, is_airnode_bucket_name
from deployer.storage.gcp import airnode_bucket_bindings


def _named(name, **attrs):
    item = MagicMock(**attrs)
    item.name = name
    return item


@pytest.fixture
def cloud_provider():
    return GcpCloudProvider(region="us-east1", projectId="airnode-project")


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def gateway(cloud_provider, client):
    gateway = GcpStorageGateway(cloud_provider, client=client)
    gateway.retry_wait = wait_none()
    return gateway


@pytest.fixture
def gcs_bucket(client):
    """The ``google.cloud.storage.Bucket`` double returned for the Airnode bucket."""
    gcs_bucket = MagicMock()
    client.bucket.return_value = gcs_bucket
    return gcs_bucket


class TestGetAirnodeBucket:
    def test_no_bucket(self, gateway, client):
        client.list_buckets.return_value = [_named("some-other-bucket")]

        assert gateway.get_airnode_bucket() is None

    def test_single_bucket(self, gateway, client):
        client.list_buckets.return_value = [_named("some-other-bucket"), _named("airnode-123456789abc")]
        client.get_bucket.return_value = MagicMock(location="US-EAST1")

        assert gateway.get_airnode_bucket() == Bucket(name="airnode-123456789abc", region="us-east1")
        client.get_bucket.assert_called_once_with("airnode-123456789abc")

    def test_multiple_buckets(self, gateway, client):
        client.list_buckets.return_value = [_named("airnode-123456789abc"), _named("airnode-abcdef123456")]

        with pytest.raises(MultipleBucketsFoundError):
            gateway.get_airnode_bucket()

    def test_retries_transient_errors(self, gateway, client):
        client.list_buckets.side_effect = [gcs_exceptions.ServiceUnavailable("unavailable"), []]

        assert gateway.get_airnode_bucket() is None
        assert client.list_buckets.call_count == 2

    def test_permanent_error_is_wrapped(self, gateway, client):
        client.list_buckets.side_effect = gcs_exceptions.Forbidden("denied")

        with pytest.raises(ProviderError, match="Failed to list GCS buckets") as exc_info:
            gateway.get_airnode_bucket()

        assert exc_info.value.provider == "gcp"
        assert client.list_buckets.call_count == 1


class TestCreateAirnodeBucket:
    def test_creates_bucket_with_security_baseline(self, gateway, client, cloud_provider):
        created = MagicMock()
        client.create_bucket.return_value = created

        bucket = gateway.create_airnode_bucket(cloud_provider)

        assert is_airnode_bucket_name(bucket.name)
        assert bucket.region == "us-east1"
        client.create_bucket.assert_called_once_with(bucket.name, location="us-east1")
        assert created.iam_configuration.uniform_bucket_level_access_enabled is True
        assert created.iam_configuration.public_access_prevention == "enforced"
        created.patch.assert_called_once_with()
        created.get_iam_policy.assert_called_once_with(requested_policy_version=3)
        policy = created.get_iam_policy.return_value
        assert policy.bindings == airnode_bucket_bindings("airnode-project")
        created.set_iam_policy.assert_called_once_with(policy)

    def test_create_failure(self, gateway, client, cloud_provider):
        client.create_bucket.side_effect = gcs_exceptions.Conflict("exists")

        with pytest.raises(ProviderError, match="Failed to create an GCS bucket"):
            gateway.create_airnode_bucket(cloud_provider)

    def test_bindings(self):
        bindings = {binding["role"]: binding["members"] for binding in airnode_bucket_bindings("p")}

        assert bindings == {
            "roles/storage.legacyBucketReader": {"projectViewer:p"},
            "roles/storage.legacyBucketOwner": {"projectEditor:p", "projectOwner:p"},
            "roles/storage.legacyObjectReader": {"projectViewer:p"},
            "roles/storage.legacyObjectOwner": {"projectEditor:p", "projectOwner:p"},
        }


class TestBucketContent:
    def test_directory_structure(self, gateway, client, bucket):
        client.list_blobs.return_value = [_named("0xabc/dev/1/config.json"), _named("0xabc/dev/1/secrets.env")]

        structure = gateway.get_bucket_directory_structure(bucket)

        version = structure["0xabc"].children["dev"].children["1"]
        assert version.children == {
            "config.json": File(bucket_key="0xabc/dev/1/config.json"),
            "secrets.env": File(bucket_key="0xabc/dev/1/secrets.env"),
        }
        client.list_blobs.assert_called_once_with(bucket.name)

    def test_store_file(self, gateway, gcs_bucket, bucket):
        gateway.store_file_to_bucket(bucket, "0xabc/dev/1/config.json", "/tmp/config.json")

        gcs_bucket.blob.assert_called_once_with("0xabc/dev/1/config.json")
        gcs_bucket.blob.return_value.upload_from_filename.assert_called_once_with("/tmp/config.json")

    def test_get_file(self, gateway, gcs_bucket, bucket):
        gcs_bucket.blob.return_value.download_as_text.return_value = '{"chains": []}'

        assert gateway.get_file_from_bucket(bucket, "0xabc/dev/1/config.json") == '{"chains": []}'

    def test_get_missing_file(self, gateway, gcs_bucket, bucket):
        gcs_bucket.blob.return_value.download_as_text.side_effect = gcs_exceptions.NotFound("missing")

        with pytest.raises(ProviderError, match="Failed to fetch file '0xabc/config.json'"):
            gateway.get_file_from_bucket(bucket, "0xabc/config.json")

    def test_copy_file(self, gateway, gcs_bucket, bucket):
        gateway.copy_file_in_bucket(bucket, "0xabc/dev/1/default.tfstate", "0xabc/dev/2/default.tfstate")

        gcs_bucket.blob.assert_called_once_with("0xabc/dev/1/default.tfstate")
        gcs_bucket.copy_blob.assert_called_once_with(
            gcs_bucket.blob.return_value, gcs_bucket, "0xabc/dev/2/default.tfstate"
        )

    def test_backing_store_exists(self, gateway, gcs_bucket):
        gcs_bucket.exists.return_value = False

        assert gateway.backing_store_exists("airnode-123456789abc-dev-terraform") is False


class TestDeletion:
    def test_delete_directory_skips_missing_markers(self, gateway, gcs_bucket, bucket):
        directory = Directory(
            bucket_key="0xabc/",
            children={"dev": Directory(bucket_key="0xabc/dev/", children={"a": File(bucket_key="0xabc/dev/a")})},
        )

        gateway.delete_bucket_directory(bucket, directory)

        args, kwargs = gcs_bucket.delete_blobs.call_args
        assert args == (["0xabc/", "0xabc/dev/", "0xabc/dev/a"],)
        # A missing object is handed to the callback instead of raising
        kwargs["on_error"](_named("0xabc/"))

    def test_delete_bucket_drains_all_versions(self, gateway, client, gcs_bucket, bucket):
        first = _named("a/config.json", generation=1)
        second = _named("a/config.json", generation=2)
        client.list_blobs.side_effect = [[first, second], []]

        gateway.delete_bucket(bucket)

        assert gcs_bucket.delete_blob.call_args_list == [
            call("a/config.json", generation=1),
            call("a/config.json", generation=2),
        ]
        client.list_blobs.assert_called_with(bucket.name, versions=True, max_results=1000)
        gcs_bucket.delete.assert_called_once_with()

    def test_delete_bucket_failure(self, gateway, client, gcs_bucket, bucket):
        client.list_blobs.return_value = []
        gcs_bucket.delete.side_effect = gcs_exceptions.Conflict("not empty")

        with pytest.raises(ProviderError, match=f"Failed to delete GCS bucket '{bucket.name}'"):
            gateway.delete_bucket(bucket)


def test_registry_lookup(cloud_provider, client):
    assert isinstance(get_storage_gateway(cloud_provider, client=client), GcpStorageGateway)
    assert isinstance(get_storage_gateway("gcp", client=client), GcpStorageGateway)
