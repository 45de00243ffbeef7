"""Mount source descriptions.

Each variant describes one kind of storage and renders the source URI and
the ``extra_configs`` map that the generated mount script embeds. Secrets
are never rendered: the map only carries ``{{secrets/<scope>/<key>}}``
references that the cluster resolves itself.

Example:
    >>> S3IamMount("my-bucket").describe()
    ('s3a://my-bucket', {})
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, TypeAlias

from skymount.core.exceptions import ValidationError
from skymount.mounts.resolver import ClusterRequirements
from skymount.workspace.arn import validate_instance_profile_arn

MountConfig: TypeAlias = dict[str, str]
AzureAuthType: TypeAlias = Literal["ACCESS_KEY", "SAS"]


def secret_ref(scope: str, key: str) -> str:
    return f"{{{{secrets/{scope}/{key}}}}}"


def _require(kind: str, **values: str) -> None:
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ValidationError(f"{kind} mount requires: {', '.join(missing)}")


def _check_directory(directory: str) -> None:
    if directory and not directory.startswith("/"):
        raise ValidationError(f"directory must start with '/', got '{directory}'")


@dataclass(frozen=True, slots=True)
class S3IamMount:
    """S3 bucket read through the cluster's instance profile.

    Args:
        bucket_name: S3 bucket name.
        instance_profile: Instance profile ARN. Needed unless the mount
            targets an explicit cluster that already carries a profile.
    """

    bucket_name: str
    instance_profile: str | None = None

    kind = "s3"

    def validate(self) -> None:
        _require("S3", bucket_name=self.bucket_name)
        if self.instance_profile is not None:
            validate_instance_profile_arn(self.instance_profile)

    def describe(self) -> tuple[str, MountConfig]:
        self.validate()
        return f"s3a://{self.bucket_name}", {}

    def cluster_requirements(self) -> ClusterRequirements:
        return ClusterRequirements(instance_profile_arn=self.instance_profile)


@dataclass(frozen=True, slots=True)
class S3KeysMount:
    """S3 bucket read with static access keys.

    The secret key is referenced from a secret scope, never embedded.
    """

    bucket_name: str
    access_key: str
    secret_scope: str
    secret_key: str

    kind = "s3"

    def validate(self) -> None:
        _require(
            "S3",
            bucket_name=self.bucket_name,
            access_key=self.access_key,
            secret_scope=self.secret_scope,
            secret_key=self.secret_key,
        )

    def describe(self) -> tuple[str, MountConfig]:
        self.validate()
        return f"s3a://{self.bucket_name}", {
            "fs.s3a.access.key": self.access_key,
            "fs.s3a.secret.key": secret_ref(self.secret_scope, self.secret_key),
        }

    def cluster_requirements(self) -> ClusterRequirements:
        return ClusterRequirements()


@dataclass(frozen=True, slots=True)
class AzureBlobMount:
    """Azure Blob Storage container, authenticated by account key or SAS token."""

    container_name: str
    storage_account_name: str
    token_secret_scope: str
    token_secret_key: str
    directory: str = ""
    auth_type: AzureAuthType = "ACCESS_KEY"

    kind = "azure_blob"

    def validate(self) -> None:
        _require(
            "Azure Blob",
            container_name=self.container_name,
            storage_account_name=self.storage_account_name,
            token_secret_scope=self.token_secret_scope,
            token_secret_key=self.token_secret_key,
        )
        _check_directory(self.directory)
        if self.auth_type not in ("ACCESS_KEY", "SAS"):
            raise ValidationError(f"auth_type must be ACCESS_KEY or SAS, got '{self.auth_type}'")

    def describe(self) -> tuple[str, MountConfig]:
        self.validate()
        host = f"{self.storage_account_name}.blob.core.windows.net"
        source = f"wasbs://{self.container_name}@{host}{self.directory}"
        if self.auth_type == "SAS":
            conf_key = f"fs.azure.sas.{self.container_name}.{host}"
        else:
            conf_key = f"fs.azure.account.key.{host}"
        return source, {conf_key: secret_ref(self.token_secret_scope, self.token_secret_key)}

    def cluster_requirements(self) -> ClusterRequirements:
        return ClusterRequirements()


@dataclass(frozen=True, slots=True)
class AdlsGen2Mount:
    """ADLS Gen2 filesystem, authenticated with a service principal (OAuth)."""

    container_name: str
    storage_account_name: str
    tenant_id: str
    client_id: str
    client_secret_scope: str
    client_secret_key: str
    directory: str = ""
    initialize_file_system: bool = False

    kind = "adls_gen2"

    def validate(self) -> None:
        _require(
            "ADLS Gen2",
            container_name=self.container_name,
            storage_account_name=self.storage_account_name,
            tenant_id=self.tenant_id,
            client_id=self.client_id,
            client_secret_scope=self.client_secret_scope,
            client_secret_key=self.client_secret_key,
        )
        _check_directory(self.directory)

    def describe(self) -> tuple[str, MountConfig]:
        self.validate()
        host = f"{self.storage_account_name}.dfs.core.windows.net"
        return f"abfss://{self.container_name}@{host}{self.directory}", {
            "fs.azure.account.auth.type": "OAuth",
            "fs.azure.account.oauth.provider.type": (
                "org.apache.hadoop.fs.azurebfs.oauth2.ClientCredsTokenProvider"
            ),
            "fs.azure.account.oauth2.client.id": self.client_id,
            "fs.azure.account.oauth2.client.secret": secret_ref(
                self.client_secret_scope, self.client_secret_key
            ),
            "fs.azure.account.oauth2.client.endpoint": (
                f"https://login.microsoftonline.com/{self.tenant_id}/oauth2/token"
            ),
            "fs.azure.createRemoteFileSystemDuringInitialization": (
                "true" if self.initialize_file_system else "false"
            ),
        }

    def cluster_requirements(self) -> ClusterRequirements:
        return ClusterRequirements()


@dataclass(frozen=True, slots=True)
class GcsMount:
    """Google Cloud Storage bucket read through the cluster's service account."""

    bucket_name: str

    kind = "gcs"

    def validate(self) -> None:
        _require("GCS", bucket_name=self.bucket_name)

    def describe(self) -> tuple[str, MountConfig]:
        self.validate()
        return f"gs://{self.bucket_name}", {}

    def cluster_requirements(self) -> ClusterRequirements:
        return ClusterRequirements()


MountSpec: TypeAlias = S3IamMount | S3KeysMount | AzureBlobMount | AdlsGen2Mount | GcsMount


def mount_spec_from_fields(kind: str, fields: Mapping[str, Any]) -> MountSpec:
    """Rebuild a MountSpec from persisted declared fields.

    For ``s3`` the credential mechanism is chosen from the fields:
    ``instance_profile`` selects S3IamMount, ``access_key`` selects
    S3KeysMount, and supplying both is rejected.

    Raises:
        ValidationError: Unknown kind, unknown fields, or conflicting
            credential mechanisms.
    """
    values = {k: v for k, v in fields.items() if v is not None and v != ""}

    match kind:
        case "s3":
            if "instance_profile" in values and "access_key" in values:
                raise ValidationError(
                    "instance_profile and access_key are mutually exclusive"
                )
            cls: type = S3KeysMount if "access_key" in values else S3IamMount
        case "azure_blob":
            cls = AzureBlobMount
        case "adls_gen2":
            cls = AdlsGen2Mount
        case "gcs":
            cls = GcsMount
        case _:
            raise ValidationError(f"Unknown mount kind '{kind}'")

    try:
        spec = cls(**values)
    except TypeError as e:
        raise ValidationError(f"Invalid fields for {kind} mount: {e}") from e
    spec.validate()
    return spec
