"""
Log Publisher
=============
Publishes the build log of a finished pipeline to a git pages branch and
returns its stable URL.

Flow:
    1. Read the log of every init container of the build pod.
    2. Clone the pages branch (gh-pages) of the logs repository into a temp
       dir, creating it as an orphan branch when it does not exist yet.
    3. Write jenkins-x/logs/<owner>/<repo>/<branch>/<build>.log.
    4. Commit only if the content changed, then push. A rejected push is
       retried once from a fresh clone.
    5. Return https://<owner>.github.io/<repo>/jenkins-x/logs/....

Failure semantics:
    Publishing is best effort. Logs not yet available, clone/commit errors and
    push races are logged as warnings and reported as "" so the activity can
    still reach its terminal status without a log URL.

Results are memoized per (activity, pod) so that retries of one reconcile
cycle do not clone and push again.
"""
import logging
import os
import posixpath
import subprocess
import tempfile
import threading
from collections import OrderedDict
from typing import List, Optional, Tuple

from kubernetes.client.rest import ApiException

from activity_controller.core.config import (
    GIT_TIMEOUT_SECONDS,
    GIT_TOKEN,
    GIT_USER_EMAIL,
    GIT_USER_NAME,
    LOGS_PAGES_BRANCH,
)
from activity_controller.core.constants import DEFAULT_BUILD_NUMBER, LOGS_PATH_PREFIX
from activity_controller.core.errors import LogPublishError
from activity_controller.models.pipeline_activity import PipelineActivity
from activity_controller.services.storage_location import StorageLocationResolver

logger = logging.getLogger(__name__)

_PUSH_ATTEMPTS = 2
_MEMO_CAP = 500


def build_log_path(activity: PipelineActivity) -> str:
    """Repository-relative path of an activity's log file."""
    build = activity.spec.build or DEFAULT_BUILD_NUMBER
    return posixpath.join(
        LOGS_PATH_PREFIX,
        activity.owner_name(),
        activity.repository_name(),
        activity.branch_name(),
        f"{build}.log",
    )


def build_log_url(activity: PipelineActivity) -> str:
    """
    Stable URL of an activity's published log, derived from the activity alone.

    Only GitHub pages hosting is supported.
    """
    return f"https://{activity.owner_name()}.github.io/{activity.repository_name()}/{build_log_path(activity)}"


def _git_env() -> dict:
    # never wait on a credential prompt
    return {**os.environ, "GIT_TERMINAL_PROMPT": "0"}


def _auth_url(git_url: str, token: str) -> str:
    if token and git_url.startswith("https://"):
        return git_url.replace("https://", f"https://x-access-token:{token}@", 1)
    return git_url


class LogPublisher:
    """
    Writes build logs to a git pages branch.

    Parameters
    ----------
    core_api : kubernetes.client.CoreV1Api
        Used to read pod logs.
    namespace : str
        Namespace of the build pods.
    location_resolver : StorageLocationResolver, optional
        Chooses the logs repository. Without one the activity's own repository is used.
    """

    def __init__(
        self,
        core_api,
        namespace: str,
        location_resolver: Optional[StorageLocationResolver] = None,
        git_token: str = GIT_TOKEN,
        user_name: str = GIT_USER_NAME,
        user_email: str = GIT_USER_EMAIL,
        git_timeout: float = GIT_TIMEOUT_SECONDS,
    ) -> None:
        self.core_api = core_api
        self.namespace = namespace
        self.location_resolver = location_resolver
        self.git_token = git_token
        self.user_name = user_name
        self.user_email = user_email
        self.git_timeout = git_timeout
        self.published_count = 0
        self.failure_count = 0
        self._lock = threading.Lock()
        self._memo: "OrderedDict[Tuple[str, str], str]" = OrderedDict()

    def __call__(self, activity: PipelineActivity, pod) -> str:
        return self.publish(activity, pod)

    # -------------------------------------------------------------------
    # Public entry point
    # -------------------------------------------------------------------
    def publish(self, activity: PipelineActivity, pod) -> str:
        """Publish the pod's build log for `activity`. Returns the URL or "" on any failure."""
        key = (activity.name, pod.metadata.name)
        with self._lock:
            if key in self._memo:
                return self._memo[key]

        try:
            url = self._publish(activity, pod)
        except LogPublishError as e:
            logger.warning("Failed to publish build log for PipelineActivity %s: %s", activity.name, e)
            with self._lock:
                self.failure_count += 1
            return ""
        except Exception as e:
            logger.warning(
                "Unexpected error publishing build log for PipelineActivity %s: %s",
                activity.name, e, exc_info=True,
            )
            with self._lock:
                self.failure_count += 1
            return ""

        with self._lock:
            self.published_count += 1
            self._memo[key] = url
            while len(self._memo) > _MEMO_CAP:
                self._memo.popitem(last=False)
        logger.info("Published build log for PipelineActivity %s to %s", activity.name, url)
        return url

    # -------------------------------------------------------------------
    # Log retrieval
    # -------------------------------------------------------------------
    def fetch_build_logs(self, pod) -> str:
        """Concatenate the logs of every init container, in step order."""
        chunks: List[str] = []
        for container in pod.spec.init_containers or []:
            try:
                text = self.core_api.read_namespaced_pod_log(
                    name=pod.metadata.name,
                    namespace=self.namespace,
                    container=container.name,
                )
            except ApiException as e:
                # Usually just not available yet
                raise LogPublishError(
                    f"could not read log of {pod.metadata.name}/{container.name}: {e.status} {e.reason}"
                ) from e
            if text:
                chunks.append(text if text.endswith("\n") else text + "\n")
        return "".join(chunks)

    # -------------------------------------------------------------------
    # Git operations
    # -------------------------------------------------------------------
    def _run_git(self, args: List[str], cwd: str, check: bool) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=cwd,
                check=check,
                capture_output=True,
                text=True,
                timeout=self.git_timeout,
                env=_git_env(),
            )
        except subprocess.CalledProcessError as e:
            # stderr only: the command line may carry the token
            raise LogPublishError(f"git {args[0]} failed: {(e.stderr or '').strip()}") from e
        except subprocess.TimeoutExpired as e:
            raise LogPublishError(f"git {args[0]} timed out after {self.git_timeout}s") from e

    def _git(self, args: List[str], cwd: str) -> subprocess.CompletedProcess:
        return self._run_git(args, cwd, check=True)

    def _clone_pages_branch(self, git_url: str, branch: str, workdir: str) -> str:
        repo_dir = os.path.join(workdir, "pages")
        auth_url = _auth_url(git_url, self.git_token)
        try:
            self._git(
                ["clone", "--depth", "1", "--single-branch", "--branch", branch, auth_url, repo_dir],
                cwd=workdir,
            )
        except LogPublishError:
            logger.info("No %s branch in %s yet, creating it", branch, git_url)
            self._git(["clone", "--depth", "1", auth_url, repo_dir], cwd=workdir)
            self._git(["checkout", "--orphan", branch], cwd=repo_dir)
            self._git(["rm", "-rf", "--quiet", "--ignore-unmatch", "."], cwd=repo_dir)
        return repo_dir

    def _commit_if_changes(self, repo_dir: str, message: str) -> bool:
        diff_check = self._run_git(["diff", "--cached", "--quiet"], repo_dir, check=False)
        if diff_check.returncode == 0:
            return False
        self._git(["config", "user.name", self.user_name], cwd=repo_dir)
        self._git(["config", "user.email", self.user_email], cwd=repo_dir)
        self._git(["commit", "-m", message], cwd=repo_dir)
        return True

    def _publish_once(self, git_url: str, branch: str, rel_path: str, data: str, message: str) -> None:
        with tempfile.TemporaryDirectory(prefix="build-logs-") as workdir:
            repo_dir = self._clone_pages_branch(git_url, branch, workdir)
            out_file = os.path.join(repo_dir, *rel_path.split("/"))
            os.makedirs(os.path.dirname(out_file), exist_ok=True)
            with open(out_file, "w", encoding="utf-8") as f:
                f.write(data)

            self._git(["add", rel_path], cwd=repo_dir)
            if not self._commit_if_changes(repo_dir, message):
                logger.debug("Build log %s unchanged, nothing to push", rel_path)
                return
            self._git(["push", "origin", f"HEAD:{branch}"], cwd=repo_dir)

    def _publish(self, activity: PipelineActivity, pod) -> str:
        data = self.fetch_build_logs(pod)

        branch = LOGS_PAGES_BRANCH
        git_url = ""
        if self.location_resolver is not None:
            location = self.location_resolver.resolve()
            if not location.is_empty():
                if not location.git_url:
                    raise LogPublishError(f"bucket storage {location.bucket_url} is not supported for build logs")
                git_url = location.git_url
                branch = location.branch()
        if not git_url:
            git_url = activity.spec.git_url
        if not git_url:
            raise LogPublishError(f"no git URL on PipelineActivity {activity.name}")

        rel_path = build_log_path(activity)
        message = f"Publishing log for Pipeline {activity.name}"

        for attempt in range(1, _PUSH_ATTEMPTS + 1):
            try:
                self._publish_once(git_url, branch, rel_path, data, message)
                break
            except LogPublishError as e:
                if attempt >= _PUSH_ATTEMPTS:
                    raise
                logger.info("Publishing attempt %d for %s failed, retrying: %s", attempt, activity.name, e)

        return build_log_url(activity)
