"""
Build Pod Info Extractor
========================
Maps a Knative build pod onto a BuildPodInfo.

BOUNDARY RULES:
    - Pure: no API calls, no logging side effects beyond debug.
    - Never raises on malformed pods. Missing labels, env vars or args simply
      leave fields empty.
    - Returns None when the pod is not a build pod we can track (no build
      name label, no git URL, or an unparseable git URL).

Recognised inputs:
    labels          build.knative.dev/buildName (or legacy build.dev/buildName),
                    owner, repository, branch, build
    init containers build-step-git-source*: "-url <git url> -revision <branch|sha>"
    env vars        REPO_OWNER, REPO_NAME, BRANCH_NAME, BUILD_NUMBER,
                    JX_BUILD_NUMBER, PULL_NUMBER, PULL_PULL_SHA, PULL_BASE_SHA,
                    LAST_COMMIT_MESSAGE
    build number    build label, else BUILD_NUMBER env, else the trailing digits
                    of the build name, else "1"
"""
import logging
import re
from typing import Dict, List, Optional

from activity_controller.core.constants import (
    ARG_REVISION,
    ARG_URL,
    DEFAULT_BRANCH,
    DEFAULT_BUILD_NUMBER,
    GIT_SOURCE_CONTAINER_PREFIX,
    LABEL_BRANCH,
    LABEL_BUILD,
    LABEL_BUILD_NAME,
    LABEL_OLD_BUILD_NAME,
    LABEL_OWNER,
    LABEL_REPOSITORY,
)
from activity_controller.models.build_pod_info import BuildPodInfo
from activity_controller.parser.git_url import parse_git_url
from activity_controller.utils.names import digit_suffix

logger = logging.getLogger(__name__)

_SHA_RE = re.compile(r"^[0-9a-f]{40}$")

# env var name -> BuildPodInfo-ish key; later containers win
_ENV_KEYS = {
    "REPO_OWNER": "owner",
    "REPO_NAME": "repository",
    "BRANCH_NAME": "branch",
    "BUILD_NUMBER": "build",
    "JX_BUILD_NUMBER": "build",
    "PULL_NUMBER": "pull_number",
    "PULL_PULL_SHA": "pull_sha",
    "PULL_BASE_SHA": "base_sha",
    "LAST_COMMIT_MESSAGE": "last_commit_message",
}


def get_build_name(pod) -> str:
    """Return the Knative build name label of a pod, or "" for non-build pods."""
    metadata = getattr(pod, "metadata", None)
    labels = (getattr(metadata, "labels", None) or {}) if metadata else {}
    return labels.get(LABEL_BUILD_NAME) or labels.get(LABEL_OLD_BUILD_NAME) or ""


def _init_containers(pod) -> List:
    spec = getattr(pod, "spec", None)
    return list(getattr(spec, "init_containers", None) or []) if spec else []


def _arg_pairs(args: Optional[List[str]]) -> Dict[str, str]:
    """Read "-flag value" pairs from a container's args."""
    args = args or []
    pairs: Dict[str, str] = {}
    for i in range(0, len(args) - 1, 2):
        pairs[args[i]] = args[i + 1]
    return pairs


def create_build_pod_info(pod) -> Optional[BuildPodInfo]:
    """
    Derive build identity and git metadata from a pod.

    Parameters
    ----------
    pod : kubernetes.client.V1Pod
        The observed pod.

    Returns
    -------
    BuildPodInfo | None
        None when the pod carries no build name or no usable git URL.
    """
    build_name = get_build_name(pod)
    if not build_name:
        return None

    git_url = ""
    revision = ""
    values: Dict[str, str] = {}
    for container in _init_containers(pod):
        name = getattr(container, "name", "") or ""
        if name.startswith(GIT_SOURCE_CONTAINER_PREFIX):
            pairs = _arg_pairs(getattr(container, "args", None))
            git_url = pairs.get(ARG_URL, git_url)
            revision = pairs.get(ARG_REVISION, revision)
        for env in getattr(container, "env", None) or []:
            key = _ENV_KEYS.get(getattr(env, "name", ""))
            if key and getattr(env, "value", None):
                values[key] = env.value

    git_info = parse_git_url(git_url)
    if git_info is None:
        logger.debug("Ignoring build pod %s: no usable git URL", build_name)
        return None

    branch = values.get("branch", "")
    last_commit_sha = ""
    if revision:
        if _SHA_RE.match(revision):
            last_commit_sha = revision
        elif not branch:
            branch = revision
    if values.get("pull_number"):
        branch = f"PR-{values['pull_number']}"
    if not last_commit_sha:
        last_commit_sha = values.get("pull_sha") or values.get("base_sha") or ""

    labels = pod.metadata.labels or {}
    owner = labels.get(LABEL_OWNER) or values.get("owner") or git_info.organisation
    repository = labels.get(LABEL_REPOSITORY) or values.get("repository") or git_info.name
    branch = labels.get(LABEL_BRANCH) or branch or DEFAULT_BRANCH
    build = (
        labels.get(LABEL_BUILD)
        or values.get("build")
        or digit_suffix(build_name)
        or DEFAULT_BUILD_NUMBER
    )

    last_commit_url = ""
    if last_commit_sha:
        last_commit_url = f"{git_info.https_url()}/commit/{last_commit_sha}"

    return BuildPodInfo(
        name=f"{owner}-{repository}-{branch}-{build}",
        pod_name=pod.metadata.name or "",
        build_name=build_name,
        pipeline=f"{owner}/{repository}/{branch}",
        owner=owner,
        repository=repository,
        branch=branch,
        build=build,
        git_url=git_url,
        git_info=git_info,
        last_commit_sha=last_commit_sha,
        last_commit_message=values.get("last_commit_message", ""),
        last_commit_url=last_commit_url,
    )
