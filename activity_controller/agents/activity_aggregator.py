"""
Activity Aggregator
===================
Folds a build pod snapshot into a PipelineActivity.

Each init container of the build pod is one pipeline stage. The aggregator
maps container states onto stage states, then derives the activity's overall
status and timestamps from the set of stages.

BOUNDARY RULES:
    - Never mutates its inputs: works on a deep copy and reports whether the
      copy differs from the input. The caller decides whether to persist.
    - Never raises for pod content; it is a total function of (pod, activity).
    - Talks to the outside world only through the optional publish_logs
      callback, which must itself never raise.

Idempotence and monotonicity:
    - A stage with a terminal status and a completion time is finalized and
      ignored by later observations, so a stale or redelivered pod snapshot
      cannot walk it back to Running.
    - A terminal activity status (Succeeded/Failed/...) is never replaced by
      Running or Pending.
    - Re-applying the same pod to the result yields no change.

Status rules:
    stage:    terminated exit 0 → Succeeded, exit != 0 → Failed,
              running → Running, otherwise Pending
    activity: all stages completed → Failed if any stage failed else Succeeded,
              otherwise Running if any stage is Running else Pending
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from activity_controller.core.constants import ANNOTATION_BUILD_LOGS_POD, ARG_URL
from activity_controller.models.pipeline_activity import (
    ActivityStatusType,
    PipelineActivity,
    StageActivityStep,
)
from activity_controller.utils.names import stage_title

logger = logging.getLogger(__name__)

LogPublisherFn = Callable[[PipelineActivity, object], str]


def _init_container_statuses(pod) -> List:
    status = getattr(pod, "status", None)
    return list(getattr(status, "init_container_statuses", None) or []) if status else []


def create_step_description(container_name: str, pod) -> str:
    """Return the URL passed as the leading "-url <value>" args of the named init container."""
    spec = getattr(pod, "spec", None)
    for container in (getattr(spec, "init_containers", None) or []) if spec else []:
        args = container.args or []
        if container.name == container_name and len(args) > 1 and args[0] == ARG_URL:
            return args[1]
    return ""


def _apply_container_status(stage: StageActivityStep, container_status, pod) -> None:
    state = container_status.state
    running = state.running if state else None
    terminated = state.terminated if state else None

    started_at: Optional[datetime] = None
    if running is not None:
        started_at = running.started_at
    elif terminated is not None:
        started_at = terminated.started_at
        if terminated.finished_at:
            stage.completed_timestamp = terminated.finished_at
    if started_at:
        stage.started_timestamp = started_at

    stage.description = create_step_description(container_status.name, pod)

    if terminated is not None:
        if terminated.exit_code == 0:
            stage.status = ActivityStatusType.SUCCEEDED
        else:
            stage.status = ActivityStatusType.FAILED
    elif running is not None:
        stage.status = ActivityStatusType.RUNNING
    else:
        stage.status = ActivityStatusType.PENDING


def _needs_log_publication(activity: PipelineActivity, pod) -> bool:
    pod_name = pod.metadata.name if pod.metadata else ""
    if not activity.spec.build_logs_url:
        return True
    return activity.metadata.annotations.get(ANNOTATION_BUILD_LOGS_POD) != pod_name


def _aggregate(activity: PipelineActivity, pod, publish_logs: Optional[LogPublisherFn]) -> None:
    spec = activity.spec
    stages = activity.stages()

    all_completed = bool(stages)
    failed = False
    running = False
    earliest_start: Optional[datetime] = None
    latest_finish: Optional[datetime] = None

    for stage in stages:
        if stage.started_timestamp and (earliest_start is None or stage.started_timestamp < earliest_start):
            earliest_start = stage.started_timestamp

        if stage.completed_timestamp:
            if latest_finish is None or stage.completed_timestamp > latest_finish:
                latest_finish = stage.completed_timestamp
            if stage.status != ActivityStatusType.SUCCEEDED:
                failed = True
        else:
            all_completed = False

        if stage.status == ActivityStatusType.RUNNING:
            running = True
        if stage.status in (ActivityStatusType.RUNNING, ActivityStatusType.PENDING, None):
            all_completed = False

    if spec.started_timestamp is None and earliest_start is not None:
        spec.started_timestamp = earliest_start

    if all_completed:
        spec.status = ActivityStatusType.FAILED if failed else ActivityStatusType.SUCCEEDED
        spec.completed_timestamp = latest_finish
        if publish_logs is not None and _needs_log_publication(activity, pod):
            url = publish_logs(activity, pod)
            if url:
                spec.build_logs_url = url
                activity.metadata.annotations[ANNOTATION_BUILD_LOGS_POD] = pod.metadata.name
            else:
                logger.debug("No build log URL for PipelineActivity %s yet", activity.name)
    elif activity.is_terminal():
        logger.debug(
            "PipelineActivity %s is already %s, ignoring stale pod state",
            activity.name, spec.status.value,
        )
    else:
        spec.status = ActivityStatusType.RUNNING if running else ActivityStatusType.PENDING


def update_pipeline_activity(
    pod,
    activity: PipelineActivity,
    publish_logs: Optional[LogPublisherFn] = None,
) -> Tuple[PipelineActivity, bool]:
    """
    Compute the new state of an activity from a build pod snapshot.

    Parameters
    ----------
    pod : kubernetes.client.V1Pod
        The observed build pod.
    activity : PipelineActivity
        The activity as last read from the API server. Not modified.
    publish_logs : callable, optional
        Called with (activity, pod) once every stage has completed and the
        logs for this pod have not been published yet. Returns the log URL,
        or "" when publication failed. None skips publication.

    Returns
    -------
    (PipelineActivity, bool)
        The updated copy and whether it differs from the input.
    """
    updated = activity.model_copy(deep=True)

    for container_status in _init_container_statuses(pod):
        stage = updated.get_or_create_stage(stage_title(container_status.name))
        if stage.is_finalized():
            continue
        _apply_container_status(stage, container_status, pod)

    _aggregate(updated, pod, publish_logs)
    return updated, updated != activity
