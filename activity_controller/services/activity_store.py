"""
Activity Store
==============
Get-or-create and optimistic-concurrency updates of PipelineActivity
custom resources.

Identity:
    The resource name is derived from "<owner>-<repository>-<branch>-<build>"
    so every observation of the same build lands on the same resource.

Races:
    Two workers creating the same activity resolve through the API server's
    create-if-absent semantics. The loser gets a 409, reads the winner back
    and carries on as if it had found it with a Get.

Errors:
    API failures are translated into ActivityStoreError. 409, 429, 5xx and
    connection failures are flagged transient so the controller retries them.
"""
import logging
from typing import Dict, Optional, Tuple

import urllib3
from kubernetes.client.rest import ApiException
from pydantic import BaseModel

from activity_controller.core.constants import (
    CRD_GROUP,
    CRD_PLURAL,
    CRD_VERSION,
    LABEL_BRANCH,
    LABEL_BUILD,
    LABEL_OWNER,
    LABEL_REPOSITORY,
)
from activity_controller.core.errors import ActivityConflictError, ActivityStoreError
from activity_controller.models.build_pod_info import BuildPodInfo
from activity_controller.models.pipeline_activity import (
    ObjectMeta,
    PipelineActivity,
    PipelineActivitySpec,
)
from activity_controller.utils.names import to_valid_name

logger = logging.getLogger(__name__)

_TRANSIENT_STATUSES = {409, 429, 500, 502, 503, 504}

# identity fields shared by the key and the spec; back-filled when empty
_SPEC_FIELDS = (
    "pipeline",
    "build",
    "git_url",
    "git_owner",
    "git_repository",
    "git_branch",
    "last_commit_sha",
    "last_commit_message",
    "last_commit_url",
)


class PipelineActivityKey(BaseModel):
    """Identity and git metadata of one pipeline execution."""
    name: str
    pipeline: str = ""
    build: str = ""
    git_url: str = ""
    git_owner: str = ""
    git_repository: str = ""
    git_branch: str = ""
    last_commit_sha: str = ""
    last_commit_message: str = ""
    last_commit_url: str = ""

    @classmethod
    def from_build_pod_info(cls, info: BuildPodInfo) -> "PipelineActivityKey":
        return cls(
            name=info.name,
            pipeline=info.pipeline,
            build=info.build,
            git_url=info.git_url,
            git_owner=info.owner,
            git_repository=info.repository,
            git_branch=info.branch,
            last_commit_sha=info.last_commit_sha,
            last_commit_message=info.last_commit_message,
            last_commit_url=info.last_commit_url,
        )

    def resource_name(self) -> str:
        return to_valid_name(self.name)

    def labels(self) -> Dict[str, str]:
        values = {
            LABEL_OWNER: self.git_owner,
            LABEL_REPOSITORY: self.git_repository,
            LABEL_BRANCH: self.git_branch,
            LABEL_BUILD: self.build,
        }
        return {k: to_valid_name(v) for k, v in values.items() if v}

    def new_activity(self, namespace: str) -> PipelineActivity:
        activity = PipelineActivity(
            metadata=ObjectMeta(name=self.resource_name(), namespace=namespace, labels=self.labels()),
            spec=PipelineActivitySpec(),
        )
        self.apply_to(activity)
        return activity

    def apply_to(self, activity: PipelineActivity) -> bool:
        """Fill empty identity fields of the activity from this key. Returns True if anything changed."""
        changed = False
        spec = activity.spec
        for field in _SPEC_FIELDS:
            value = getattr(self, field)
            if value and not getattr(spec, field):
                setattr(spec, field, value)
                changed = True
        return changed


def _store_error(exc: ApiException, action: str, name: str) -> ActivityStoreError:
    message = f"Failed to {action} PipelineActivity {name}: {exc.status} {exc.reason}"
    if exc.status == 409:
        return ActivityConflictError(message)
    return ActivityStoreError(message, status=exc.status, transient=exc.status in _TRANSIENT_STATUSES)


class ActivityStore:
    """
    PipelineActivity access for one namespace.

    Parameters
    ----------
    custom_api : kubernetes.client.CustomObjectsApi
        Client used for custom resource CRUD.
    namespace : str
        Namespace the activities live in.
    """

    def __init__(self, custom_api, namespace: str) -> None:
        self.custom_api = custom_api
        self.namespace = namespace

    def _call(self, action: str, name: str, fn, *args, **kwargs) -> dict:
        try:
            return fn(CRD_GROUP, CRD_VERSION, self.namespace, CRD_PLURAL, *args, **kwargs)
        except ApiException as e:
            raise _store_error(e, action, name) from e
        except urllib3.exceptions.HTTPError as e:
            raise ActivityStoreError(
                f"Failed to {action} PipelineActivity {name}: {e}", transient=True
            ) from e

    def get(self, name: str) -> Optional[PipelineActivity]:
        """Return the named activity, or None if it does not exist."""
        try:
            obj = self._call("get", name, self.custom_api.get_namespaced_custom_object, name)
        except ActivityStoreError as e:
            if e.status == 404:
                return None
            raise
        return PipelineActivity.from_resource(obj)

    def create(self, activity: PipelineActivity) -> PipelineActivity:
        obj = self._call(
            "create", activity.name,
            self.custom_api.create_namespaced_custom_object, activity.to_resource(),
        )
        logger.info("Created PipelineActivity %s", activity.name)
        return PipelineActivity.from_resource(obj)

    def update(self, activity: PipelineActivity) -> PipelineActivity:
        """Replace the activity; fails with ActivityConflictError if its resourceVersion is stale."""
        obj = self._call(
            "update", activity.name,
            self.custom_api.replace_namespaced_custom_object, activity.name, activity.to_resource(),
        )
        return PipelineActivity.from_resource(obj)

    def get_or_create(self, key: PipelineActivityKey) -> Tuple[PipelineActivity, bool]:
        """
        Find the activity for a build, creating it on first sight.

        Returns
        -------
        (PipelineActivity, bool)
            The stored activity and whether this call created it.
        """
        name = key.resource_name()
        activity = self.get(name)
        if activity is None:
            try:
                return self.create(key.new_activity(self.namespace)), True
            except ActivityConflictError:
                logger.info("PipelineActivity %s was created concurrently, reading it back", name)
                activity = self.get(name)
                if activity is None:
                    raise ActivityStoreError(
                        f"PipelineActivity {name} disappeared after a conflicting create",
                        transient=True,
                    )

        if key.apply_to(activity):
            activity = self.update(activity)
        return activity, False
