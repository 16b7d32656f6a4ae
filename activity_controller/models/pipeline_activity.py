"""
PipelineActivity Model
======================
Pydantic models for the `jenkins.io/v1` PipelineActivity custom resource.

This is the persisted contract dashboards and promotion tooling read, so the
models round-trip the camelCase JSON the API server stores. Unknown fields
are kept (extra="allow") so that a read-modify-replace cycle never drops
data written by other tools.

Fields (spec):
    pipeline           : "<owner>/<repository>/<branch>"
    build              : build number string
    status             : aggregate ActivityStatusType
    startedTimestamp   : earliest stage start
    completedTimestamp : latest stage completion, set only once terminal
    buildLogsUrl       : stable URL of the published build log
    steps              : ordered list of PipelineActivityStep
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from activity_controller.core.constants import (
    CRD_GROUP,
    CRD_KIND,
    CRD_VERSION,
    STEP_KIND_STAGE,
)


class ActivityStatusType(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    ERROR = "Error"
    ABORTED = "Aborted"
    NOT_EXECUTED = "NotExecuted"
    WAITING = "Waiting"

    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    ActivityStatusType.SUCCEEDED,
    ActivityStatusType.FAILED,
    ActivityStatusType.ERROR,
    ActivityStatusType.ABORTED,
})


def _blank_to_none(value: Any) -> Any:
    return None if value == "" else value


class _ResourceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class StageActivityStep(_ResourceModel):
    name: str = ""
    description: str = ""
    status: Optional[ActivityStatusType] = None
    started_timestamp: Optional[datetime] = Field(default=None, alias="startedTimestamp")
    completed_timestamp: Optional[datetime] = Field(default=None, alias="completedTimestamp")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def is_finalized(self) -> bool:
        """A stage with a terminal status and a completion time is written once."""
        return (
            self.status is not None
            and self.status.is_terminal()
            and self.completed_timestamp is not None
        )


class PipelineActivityStep(_ResourceModel):
    kind: str = STEP_KIND_STAGE
    stage: Optional[StageActivityStep] = None


class PipelineActivitySpec(_ResourceModel):
    pipeline: str = ""
    build: str = ""
    status: Optional[ActivityStatusType] = None
    started_timestamp: Optional[datetime] = Field(default=None, alias="startedTimestamp")
    completed_timestamp: Optional[datetime] = Field(default=None, alias="completedTimestamp")
    steps: List[PipelineActivityStep] = []
    build_url: str = Field(default="", alias="buildUrl")
    build_logs_url: str = Field(default="", alias="buildLogsUrl")
    git_url: str = Field(default="", alias="gitUrl")
    git_owner: str = Field(default="", alias="gitOwner")
    git_repository: str = Field(default="", alias="gitRepository")
    git_branch: str = Field(default="", alias="gitBranch")
    last_commit_sha: str = Field(default="", alias="lastCommitSHA")
    last_commit_message: str = Field(default="", alias="lastCommitMessage")
    last_commit_url: str = Field(default="", alias="lastCommitURL")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ObjectMeta(_ResourceModel):
    name: str = ""
    namespace: str = ""
    resource_version: Optional[str] = Field(default=None, alias="resourceVersion")
    uid: Optional[str] = None
    labels: Dict[str, str] = {}
    annotations: Dict[str, str] = {}


class PipelineActivity(_ResourceModel):
    api_version: str = Field(default=f"{CRD_GROUP}/{CRD_VERSION}", alias="apiVersion")
    kind: str = CRD_KIND
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PipelineActivitySpec = Field(default_factory=PipelineActivitySpec)

    @property
    def name(self) -> str:
        return self.metadata.name

    def is_terminal(self) -> bool:
        return self.spec.status is not None and self.spec.status.is_terminal()

    def _pipeline_paths(self) -> List[str]:
        return [p for p in self.spec.pipeline.split("/") if p]

    def repository_name(self) -> str:
        """Repository from the spec, else the second segment of the pipeline name."""
        if self.spec.git_repository:
            return self.spec.git_repository
        paths = self._pipeline_paths()
        return paths[1] if len(paths) > 1 else ""

    def branch_name(self) -> str:
        """Branch from the spec, else the last segment of the pipeline name."""
        if self.spec.git_branch:
            return self.spec.git_branch
        paths = self._pipeline_paths()
        return paths[-1] if len(paths) > 2 else ""

    def owner_name(self) -> str:
        if self.spec.git_owner:
            return self.spec.git_owner
        paths = self._pipeline_paths()
        return paths[0] if paths else ""

    def stages(self) -> List[StageActivityStep]:
        return [s.stage for s in self.spec.steps if s.kind == STEP_KIND_STAGE and s.stage is not None]

    def get_or_create_stage(self, title: str) -> StageActivityStep:
        """Return the Stage step named `title`, appending a new one if absent."""
        for stage in self.stages():
            if stage.name == title:
                return stage
        stage = StageActivityStep(name=title)
        self.spec.steps.append(PipelineActivityStep(kind=STEP_KIND_STAGE, stage=stage))
        return stage

    def to_resource(self) -> Dict[str, Any]:
        """Serialize to the JSON body the API server expects."""
        body = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        body.get("metadata", {}).pop("managedFields", None)
        return body

    @classmethod
    def from_resource(cls, obj: Dict[str, Any]) -> "PipelineActivity":
        return cls.model_validate(obj)
