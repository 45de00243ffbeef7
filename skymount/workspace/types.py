"""Workspace REST API response types.

TypedDicts for API responses - converted to domain dataclasses at the
API boundary.
"""

from __future__ import annotations

from typing import NotRequired, TypedDict

# =============================================================================
# Clusters (2.0)
# =============================================================================


class AwsAttributesResponse(TypedDict):
    instance_profile_arn: NotRequired[str]
    availability: NotRequired[str]
    zone_id: NotRequired[str]


class ClusterResponse(TypedDict):
    cluster_id: str
    cluster_name: NotRequired[str]
    state: NotRequired[str]  # PENDING, RUNNING, TERMINATED, ERROR, ...
    state_message: NotRequired[str]
    spark_version: NotRequired[str]
    node_type_id: NotRequired[str]
    num_workers: NotRequired[int]
    autotermination_minutes: NotRequired[int]
    aws_attributes: NotRequired[AwsAttributesResponse]
    custom_tags: NotRequired[dict[str, str]]


class ClusterListResponse(TypedDict):
    clusters: NotRequired[list[ClusterResponse]]


class SparkVersion(TypedDict):
    key: str
    name: str


class NodeType(TypedDict):
    node_type_id: str
    memory_mb: int
    num_cores: NotRequired[float]
    is_deprecated: NotRequired[bool]
    category: NotRequired[str]


# =============================================================================
# Command execution (1.2)
# =============================================================================


class CommandResultsResponse(TypedDict):
    resultType: NotRequired[str]  # text, error, table, image, ...
    data: NotRequired[object]
    summary: NotRequired[str]
    cause: NotRequired[str]


class CommandStatusResponse(TypedDict):
    id: str
    status: str  # Queued, Running, Cancelling, Finished, Cancelled, Error
    results: NotRequired[CommandResultsResponse]


class ContextStatusResponse(TypedDict):
    id: str
    status: str  # Pending, Running, Error


# =============================================================================
# Instance profiles (2.0)
# =============================================================================


class InstanceProfileResponse(TypedDict):
    instance_profile_arn: str
    is_meta_instance_profile: NotRequired[bool]


class InstanceProfileListResponse(TypedDict):
    instance_profiles: NotRequired[list[InstanceProfileResponse]]
