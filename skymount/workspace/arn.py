"""Amazon Resource Name parsing for instance-profile references."""

from __future__ import annotations

from dataclasses import dataclass

from skymount.core.exceptions import ValidationError

ARN_PREFIX = "arn:"
INSTANCE_PROFILE_PREFIX = "instance-profile/"


@dataclass(frozen=True, slots=True)
class Arn:
    """Parsed ``arn:partition:service:region:account-id:resource``."""

    partition: str
    service: str
    region: str
    account_id: str
    resource: str

    @property
    def resource_name(self) -> str:
        """Last path segment of the resource, e.g. the profile name."""
        return self.resource.rsplit("/", 1)[-1]

    def __str__(self) -> str:
        return ":".join(
            ("arn", self.partition, self.service, self.region, self.account_id, self.resource)
        )


def parse_arn(value: str) -> Arn:
    if not value.startswith(ARN_PREFIX):
        raise ValidationError("arn: invalid prefix")
    sections = value.split(":", 5)
    if len(sections) != 6:
        raise ValidationError("arn: not enough sections")
    _, partition, service, region, account_id, resource = sections
    return Arn(
        partition=partition,
        service=service,
        region=region,
        account_id=account_id,
        resource=resource,
    )


def validate_instance_profile_arn(value: str) -> Arn:
    arn = parse_arn(value)
    if not arn.resource.startswith(INSTANCE_PROFILE_PREFIX) or not arn.resource_name:
        raise ValidationError(f"Not an instance profile ARN: {value}")
    return arn
