"""Cloud provider definitions shared by the storage gateways and terraform builder."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class CloudProviderType(str, Enum):
    aws = "aws"
    gcp = "gcp"

    @classmethod
    def choices(cls) -> list:
        return [member.value for member in cls]


class _CloudProviderBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    region: str
    disable_concurrency_reservations: bool = Field(
        default=False, alias="disableConcurrencyReservations"
    )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class AwsCloudProvider(_CloudProviderBase):
    type: Literal["aws"] = "aws"


class GcpCloudProvider(_CloudProviderBase):
    type: Literal["gcp"] = "gcp"
    project_id: str = Field(alias="projectId")


CloudProvider = Annotated[
    Union[AwsCloudProvider, GcpCloudProvider], Field(discriminator="type")
]


class _CloudProviderHolder(BaseModel):
    cloud_provider: CloudProvider


def parse_cloud_provider(data: Dict[str, Any]) -> Union[AwsCloudProvider, GcpCloudProvider]:
    """Build the provider model matching ``data["type"]``.

    Raises:
        pydantic.ValidationError: unknown type or missing fields
    """
    return _CloudProviderHolder(cloud_provider=data).cloud_provider
