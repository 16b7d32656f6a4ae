"""
Storage Location
================
Works out which git repository build logs are published to.

Lookup order:
    1. LOGS_GIT_URL override from configuration
    2. the "logs" storage location in the dev Environment's team settings
    3. empty; the publisher then falls back to the activity's own git URL

The dev Environment is re-read at most once per cache TTL.
"""
import logging
import threading
import time
from typing import Optional

from kubernetes.client.rest import ApiException
from pydantic import BaseModel, ConfigDict, Field

from activity_controller.core.config import LOGS_GIT_URL, LOGS_PAGES_BRANCH
from activity_controller.core.constants import (
    CLASSIFICATION_LOGS,
    CRD_GROUP,
    CRD_VERSION,
    DEV_ENVIRONMENT_NAME,
    ENVIRONMENT_PLURAL,
)

logger = logging.getLogger(__name__)

_CACHE_TTL_SECONDS = 60.0


class StorageLocation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    classifier: str = ""
    git_url: str = Field(default="", alias="gitUrl")
    git_branch: str = Field(default="", alias="gitBranch")
    bucket_url: str = Field(default="", alias="bucketUrl")

    def is_empty(self) -> bool:
        return not self.git_url and not self.bucket_url

    def branch(self) -> str:
        return self.git_branch or LOGS_PAGES_BRANCH


class StorageLocationResolver:
    """
    Resolves the logs StorageLocation for a namespace.

    Parameters
    ----------
    custom_api : kubernetes.client.CustomObjectsApi | None
        Used to read the dev Environment. None disables the lookup.
    namespace : str
        Namespace holding the Environment resources.
    override_git_url : str
        Repository that always wins when set.
    """

    def __init__(self, custom_api, namespace: str, override_git_url: str = LOGS_GIT_URL) -> None:
        self.custom_api = custom_api
        self.namespace = namespace
        self.override_git_url = override_git_url
        self._lock = threading.Lock()
        self._cached: Optional[StorageLocation] = None
        self._cached_at = 0.0

    def _read_location(self) -> StorageLocation:
        try:
            env = self.custom_api.get_namespaced_custom_object(
                CRD_GROUP, CRD_VERSION, self.namespace, ENVIRONMENT_PLURAL, DEV_ENVIRONMENT_NAME,
            )
        except ApiException as e:
            logger.warning("No Environment %s found in %s: %s", DEV_ENVIRONMENT_NAME, self.namespace, e.reason)
            return StorageLocation(classifier=CLASSIFICATION_LOGS)

        team_settings = (env.get("spec") or {}).get("teamSettings") or {}
        for raw in team_settings.get("storageLocations") or []:
            location = StorageLocation.model_validate(raw)
            if location.classifier == CLASSIFICATION_LOGS:
                return location
        return StorageLocation(classifier=CLASSIFICATION_LOGS)

    def resolve(self) -> StorageLocation:
        if self.override_git_url:
            return StorageLocation(classifier=CLASSIFICATION_LOGS, git_url=self.override_git_url)
        if self.custom_api is None:
            return StorageLocation(classifier=CLASSIFICATION_LOGS)

        with self._lock:
            now = time.monotonic()
            if self._cached is None or now - self._cached_at > _CACHE_TTL_SECONDS:
                self._cached = self._read_location()
                self._cached_at = now
            return self._cached.model_copy()
