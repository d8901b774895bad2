"""Wire models for the artifact repository's BEFORE_DOWNLOAD hook.

The host posts a ``BeforeDownloadRequest`` (camelCase JSON) for every download
attempt and expects a ``BeforeDownloadResponse`` back. Every field is optional
at the wire level: a request that lacks its repository key or path must still
parse so the gate can answer it with DOWNLOAD_STOP instead of a 422.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _HostModel(BaseModel):
    """Base for host payloads: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RepoType(IntEnum):
    REPO_TYPE_UNSPECIFIED = 0
    REPO_TYPE_LOCAL = 1
    REPO_TYPE_REMOTE = 2
    REPO_TYPE_FEDERATED = 3
    UNRECOGNIZED = -1


class DownloadStatus(str, Enum):
    """Verdict returned to the host.

    Serialized by name, which is what the host parses.
    """

    DOWNLOAD_UNSPECIFIED = "DOWNLOAD_UNSPECIFIED"
    DOWNLOAD_PROCEED = "DOWNLOAD_PROCEED"
    DOWNLOAD_STOP = "DOWNLOAD_STOP"
    DOWNLOAD_WARN = "DOWNLOAD_WARN"


class RepoPath(_HostModel):
    key: Optional[str] = None
    path: Optional[str] = None
    id: Optional[str] = None
    is_root: Optional[bool] = Field(default=False, alias="isRoot")
    is_folder: Optional[bool] = Field(default=False, alias="isFolder")


class UserContext(_HostModel):
    """Who is downloading. Xray's own fetches show up here as an xray user or realm."""

    id: Optional[str] = None
    is_token: bool = Field(default=False, alias="isToken")
    realm: Optional[str] = None


class Header(_HostModel):
    value: list[str] = Field(default_factory=list)


class DownloadMetadata(_HostModel):
    repo_path: Optional[RepoPath] = Field(default=None, alias="repoPath")
    original_repo_path: Optional[RepoPath] = Field(default=None, alias="originalRepoPath")
    name: Optional[str] = None
    head_only: bool = Field(default=False, alias="headOnly")
    checksum: bool = False
    recursive: bool = False
    modification_time: Optional[int] = Field(default=None, alias="modificationTime")
    directory_request: bool = Field(default=False, alias="directoryRequest")
    metadata: bool = False
    last_modified: Optional[int] = Field(default=None, alias="lastModified")
    if_modified_since: Optional[int] = Field(default=None, alias="ifModifiedSince")
    servlet_context_url: Optional[str] = Field(default=None, alias="servletContextUrl")
    uri: Optional[str] = None
    client_address: Optional[str] = Field(default=None, alias="clientAddress")
    zip_resource_path: Optional[str] = Field(default=None, alias="zipResourcePath")
    zip_resource_request: bool = Field(default=False, alias="zipResourceRequest")
    replace_head_request_with_get: bool = Field(
        default=False, alias="replaceHeadRequestWithGet"
    )
    repo_type: RepoType = Field(default=RepoType.REPO_TYPE_UNSPECIFIED, alias="repoType")

    @field_validator("repo_type", mode="before")
    @classmethod
    def _coerce_repo_type(cls, value: object) -> RepoType:
        """Accept the enum by number or by name; anything else is UNRECOGNIZED."""
        if isinstance(value, RepoType):
            return value
        if isinstance(value, str) and value in RepoType.__members__:
            return RepoType[value]
        try:
            return RepoType(int(value))  # type: ignore[call-overload]
        except (TypeError, ValueError):
            return RepoType.UNRECOGNIZED


class BeforeDownloadRequest(_HostModel):
    """One download attempt, as posted by the host."""

    metadata: Optional[DownloadMetadata] = None
    headers: dict[str, Header] = Field(default_factory=dict)
    user_context: Optional[UserContext] = Field(default=None, alias="userContext")
    repo_path: Optional[RepoPath] = Field(default=None, alias="repoPath")

    @property
    def target(self) -> Optional[RepoPath]:
        """The repo path being downloaded (``metadata.repoPath``)."""
        return self.metadata.repo_path if self.metadata else None

    @property
    def repo_key(self) -> Optional[str]:
        return self.target.key if self.target else None

    @property
    def artifact_path(self) -> Optional[str]:
        return self.target.path if self.target else None

    @property
    def client_address(self) -> str:
        return (self.metadata.client_address if self.metadata else None) or ""


class BeforeDownloadResponse(BaseModel):
    """Verdict for one download attempt. ``headers`` is always empty in this service."""

    status: DownloadStatus
    message: str
    headers: dict[str, str] = Field(default_factory=dict)
