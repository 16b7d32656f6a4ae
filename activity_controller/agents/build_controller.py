"""
Build Controller
================
Watches build pods and keeps one PipelineActivity per build in step with them.

Per event:
    pod → BuildPodInfo → PipelineActivityKey → get-or-create activity
        → aggregate pod state into it → update only if it changed
        → (pipeline finished) publish build log, record its URL

Watch loop:
    - One watch session lasts RESYNC_PERIOD_SECONDS. Every session starts
      without a resourceVersion, so the API server replays all current pods
      first. That replay is the resync that heals dropped events.
    - A broken session is logged and reconnected with capped backoff.
    - DELETED events are ignored: activities outlive their pods.

Dispatch:
    - Distinct pods are reconciled concurrently on a bounded thread pool, so a
      slow log push never stalls the watch thread.
    - Events for the same pod are coalesced and serialized: one worker owns a
      pod at a time and always works on its newest snapshot.

Failure handling:
    - The get/aggregate/update cycle is retried with a fixed wait while the
      store reports transient errors (write conflicts, throttling, 5xx), within
      an overall RETRY_TIMEOUT_SECONDS budget.
    - When the budget is spent the event is dropped with a warning. The next
      delivery of the pod redoes the whole computation.
    - Nothing raised while handling one pod escapes to the watch loop.
"""
import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import urllib3
from kubernetes import watch
from kubernetes.client.rest import ApiException
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_delay,
    wait_fixed,
)

from activity_controller.agents.activity_aggregator import update_pipeline_activity
from activity_controller.agents.log_publisher import LogPublisher
from activity_controller.core.config import (
    RESYNC_PERIOD_SECONDS,
    RETRY_INTERVAL_SECONDS,
    RETRY_TIMEOUT_SECONDS,
    WORKER_COUNT,
)
from activity_controller.core.errors import ActivityStoreError
from activity_controller.parser.build_pod_info import create_build_pod_info
from activity_controller.services.activity_store import ActivityStore, PipelineActivityKey
from activity_controller.services.kube_client import KubeClients
from activity_controller.services.storage_location import StorageLocationResolver
from activity_controller.state.controller_state import ControllerState, new_controller_state

logger = logging.getLogger(__name__)

# Watch reconnect backoff (seconds)
_MIN_BACKOFF = 1.0
_MAX_BACKOFF = 30.0


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, ActivityStoreError) and exc.transient


def _pod_key(pod) -> str:
    return pod.metadata.uid or f"{pod.metadata.namespace}/{pod.metadata.name}"


class BuildController:
    """
    Long-running reconciler of build pods into PipelineActivity resources.

    Parameters
    ----------
    core_api : kubernetes.client.CoreV1Api
        Source of pod watch events.
    store : ActivityStore
        PipelineActivity access for the watched namespace.
    publisher : LogPublisher, optional
        Publishes build logs once a pipeline finishes. None disables publishing.
    namespace : str
        Namespace to watch.
    executor : concurrent.futures.Executor, optional
        Runs per-pod reconciliation. Defaults to a pool of `worker_count` threads.
    """

    def __init__(
        self,
        core_api,
        store: ActivityStore,
        publisher: Optional[LogPublisher],
        namespace: str,
        retry_timeout: float = RETRY_TIMEOUT_SECONDS,
        retry_interval: float = RETRY_INTERVAL_SECONDS,
        resync_period: int = RESYNC_PERIOD_SECONDS,
        worker_count: int = WORKER_COUNT,
        executor: Optional[Executor] = None,
    ) -> None:
        self.core_api = core_api
        self.store = store
        self.publisher = publisher
        self.namespace = namespace
        self.retry_timeout = retry_timeout
        self.retry_interval = retry_interval
        self.resync_period = resync_period
        self.executor = executor or ThreadPoolExecutor(
            max_workers=worker_count, thread_name_prefix="activity-worker",
        )

        self.state: ControllerState = new_controller_state(namespace)
        self._lock = threading.Lock()
        # pod key -> newest unprocessed snapshot; None while a worker owns the pod
        self._pending: Dict[str, Any] = {}
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._watch: Optional[watch.Watch] = None

    @classmethod
    def from_clients(cls, clients: KubeClients, namespace: str, **kwargs) -> "BuildController":
        """Wire a controller, its activity store and its log publisher from API clients."""
        resolver = StorageLocationResolver(clients.custom, namespace)
        publisher = LogPublisher(clients.core, namespace, location_resolver=resolver)
        store = ActivityStore(clients.custom, namespace)
        return cls(clients.core, store, publisher, namespace, **kwargs)

    # -------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------
    def _count(self, field: str, amount: int = 1) -> None:
        with self._lock:
            self.state[field] += amount

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the controller counters, safe to serialize."""
        with self._lock:
            data = dict(self.state)
        if self.publisher is not None:
            data["logs_published"] = self.publisher.published_count
            data["log_publish_failures"] = self.publisher.failure_count
        return data

    # -------------------------------------------------------------------
    # Reconcile one pod
    # -------------------------------------------------------------------
    def _reconcile(self, key: PipelineActivityKey, pod) -> bool:
        activity, created = self.store.get_or_create(key)
        if activity is None:
            raise ActivityStoreError(f"No PipelineActivity returned for {key.resource_name()}")
        if created:
            self._count("activities_created")

        updated, changed = update_pipeline_activity(pod, activity, self.publisher)
        if not changed:
            return False

        self.store.update(updated)
        self._count("activities_updated")
        if updated.spec.status != activity.spec.status and updated.spec.status is not None:
            logger.info("PipelineActivity %s is now %s", updated.name, updated.spec.status.value)
        return True

    def handle_pod(self, pod) -> bool:
        """
        Reconcile the activity of one pod snapshot.

        Returns True when the activity was written. Never raises.
        """
        info = create_build_pod_info(pod)
        if info is None:
            self._count("pods_ignored")
            return False

        key = PipelineActivityKey.from_build_pod_info(info)
        self._count("pods_reconciled")

        retrying = Retrying(
            stop=stop_after_delay(self.retry_timeout),
            wait=wait_fixed(self.retry_interval),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        try:
            return retrying(self._reconcile, key, pod)
        except ActivityStoreError as e:
            logger.warning("Failed to update PipelineActivity %s: %s", key.resource_name(), e)
        except Exception as e:
            logger.error(
                "Unexpected error reconciling build pod %s: %s", pod.metadata.name, e, exc_info=True,
            )
        self._count("update_failures")
        return False

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    def dispatch(self, pod) -> None:
        """Queue a pod snapshot, coalescing with any snapshot of the same pod not yet picked up."""
        key = _pod_key(pod)
        with self._lock:
            owned = key in self._pending
            self._pending[key] = pod
        if not owned:
            self.executor.submit(self._drain, key)

    def _drain(self, key: str) -> None:
        while True:
            with self._lock:
                pod = self._pending.get(key)
                if pod is None:
                    self._pending.pop(key, None)
                    return
                self._pending[key] = None
            self.handle_pod(pod)

    def on_event(self, event: Dict[str, Any]) -> None:
        event_type = event.get("type")
        pod = event.get("object")
        self._count("events_received")
        with self._lock:
            self.state["last_event_at"] = datetime.now(timezone.utc).isoformat()

        if event_type in ("ADDED", "MODIFIED"):
            if getattr(pod, "metadata", None) is None:
                logger.info("Ignoring %s event without a pod: %r", event_type, pod)
                return
            self.dispatch(pod)
        elif event_type == "ERROR":
            logger.warning("Pod watch reported an error: %s", pod)

    # -------------------------------------------------------------------
    # Watch loop
    # -------------------------------------------------------------------
    def _watch_once(self) -> None:
        self._watch = watch.Watch()
        stream = self._watch.stream(
            self.core_api.list_namespaced_pod,
            self.namespace,
            timeout_seconds=self.resync_period,
        )
        for event in stream:
            if self._stop_event.is_set():
                self._watch.stop()
                break
            self.on_event(event)

    def run(self) -> None:
        """Watch pods until stop() is called."""
        logger.info("Watching for Knative build pods in namespace %s", self.namespace)
        with self._lock:
            self.state["running"] = True
        backoff = _MIN_BACKOFF
        while not self._stop_event.is_set():
            try:
                self._watch_once()
                backoff = _MIN_BACKOFF
                continue
            except ApiException as e:
                logger.warning("Pod watch in %s failed (HTTP %s): %s", self.namespace, e.status, e.reason)
            except urllib3.exceptions.HTTPError as e:
                logger.warning("Pod watch in %s lost its connection: %s", self.namespace, e)
            except Exception as e:
                logger.error("Pod watch in %s failed: %s", self.namespace, e, exc_info=True)
            self._stop_event.wait(backoff)
            backoff = min(backoff * 2, _MAX_BACKOFF)
        with self._lock:
            self.state["running"] = False
        logger.info("Stopped watching build pods in namespace %s", self.namespace)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            logger.warning("BuildController already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name="build-controller", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._watch is not None:
            self._watch.stop()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.executor.shutdown(wait=False)
