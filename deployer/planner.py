"""Decide which bucket objects a removal may delete."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from deployer.directory import Directory, DirectoryStructure, get_address_directory, get_stage_directory
from deployer.exceptions import DeploymentNotFoundError
from deployer.storage.base import Bucket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemovalPlan:
    """Deletions for one address/stage, applied in field order."""

    stage_directory: Directory
    address_directory: Optional[Directory] = None
    delete_bucket: bool = False


def plan_removal(structure: DirectoryStructure, airnode_address: str, stage: str) -> RemovalPlan:
    """Work out the deletions needed to remove one deployment.

    The stage directory always goes. Its address directory goes too when no
    other stage is left, and the whole bucket when no other top level entry
    is left. ``structure`` is not modified.

    Raises:
        DeploymentNotFoundError: the address/stage does not exist
        MalformedTreeError: the address or stage entry is not a directory
    """
    stage_directory = get_stage_directory(structure, airnode_address, stage)
    if stage_directory is None:
        raise DeploymentNotFoundError(airnode_address, stage)
    address_directory = get_address_directory(structure, airnode_address)

    other_stages = [name for name in address_directory.children if name != stage]
    if other_stages:
        return RemovalPlan(stage_directory=stage_directory)

    other_entries = [name for name in structure if name != airnode_address]
    return RemovalPlan(
        stage_directory=stage_directory,
        # Only the marker is left once the stage is gone
        address_directory=Directory(bucket_key=address_directory.bucket_key),
        delete_bucket=not other_entries,
    )


def execute_removal_plan(gateway: Any, bucket: Bucket, plan: RemovalPlan) -> None:
    logger.debug("Deleting deployment directory '%s' and its content", plan.stage_directory.bucket_key)
    gateway.delete_bucket_directory(bucket, plan.stage_directory)

    if plan.address_directory is not None:
        logger.debug("Deleting Airnode address directory '%s'", plan.address_directory.bucket_key)
        gateway.delete_bucket_directory(bucket, plan.address_directory)

    if plan.delete_bucket:
        logger.debug("Deleting Airnode bucket '%s'", bucket.name)
        gateway.delete_bucket(bucket)
