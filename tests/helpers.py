"""
Test helpers: build pods out of kubernetes client models and an in-memory
stand-in for CustomObjectsApi with resourceVersion checks.
"""
import copy
from datetime import datetime, timedelta, timezone

from kubernetes import client
from kubernetes.client.rest import ApiException

from activity_controller.core.constants import LABEL_BUILD_NAME

T0 = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)
GIT_URL = "https://github.com/jstrachan/demo.git"


def at(seconds: int) -> datetime:
    return T0 + timedelta(seconds=seconds)


def _status(name, state):
    return client.V1ContainerStatus(
        name=name, image="gcr.io/step", image_id="", ready=False, restart_count=0, state=state,
    )


def terminated(name, exit_code, started, finished):
    return _status(name, client.V1ContainerState(
        terminated=client.V1ContainerStateTerminated(
            exit_code=exit_code, started_at=started, finished_at=finished,
        )
    ))


def running(name, started):
    return _status(name, client.V1ContainerState(
        running=client.V1ContainerStateRunning(started_at=started)
    ))


def waiting(name):
    return _status(name, client.V1ContainerState(
        waiting=client.V1ContainerStateWaiting(reason="PodInitializing")
    ))


def make_pod(
    name="jstrachan-demo-master-1-pod",
    uid="uid-1",
    statuses=None,
    steps=("build", "test"),
    labels=None,
    git_url=GIT_URL,
    revision="master",
    env=None,
    step_args=None,
):
    """A Knative build pod: a git-source init container followed by one init container per step."""
    if labels is None:
        labels = {LABEL_BUILD_NAME: "jstrachan-demo-master-1"}
    git_args = []
    if git_url is not None:
        git_args = ["-url", git_url, "-revision", revision]
    env_vars = [client.V1EnvVar(name=k, value=v) for k, v in (env or {}).items()]

    init_containers = [client.V1Container(name="build-step-git-source", args=git_args, env=env_vars)]
    for step in steps:
        init_containers.append(client.V1Container(
            name=f"build-step-{step}", args=(step_args or {}).get(step),
        ))

    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace="jx", uid=uid, labels=labels),
        spec=client.V1PodSpec(
            containers=[client.V1Container(name="nop")],
            init_containers=init_containers,
        ),
        status=client.V1PodStatus(init_container_statuses=statuses or []),
    )


class FakeCustomObjectsApi:
    """Keeps custom objects in a dict; enforces create-if-absent and resourceVersion on replace."""

    def __init__(self):
        self.objects = {}
        self.calls = []
        self._rv = 0

    def _next_rv(self):
        self._rv += 1
        return str(self._rv)

    def get_namespaced_custom_object(self, group, version, namespace, plural, name):
        self.calls.append(("get", name))
        obj = self.objects.get((namespace, plural, name))
        if obj is None:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(obj)

    def create_namespaced_custom_object(self, group, version, namespace, plural, body):
        name = body["metadata"]["name"]
        self.calls.append(("create", name))
        if (namespace, plural, name) in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        obj = copy.deepcopy(body)
        obj["metadata"]["resourceVersion"] = self._next_rv()
        self.objects[(namespace, plural, name)] = obj
        return copy.deepcopy(obj)

    def replace_namespaced_custom_object(self, group, version, namespace, plural, name, body):
        self.calls.append(("replace", name))
        current = self.objects.get((namespace, plural, name))
        if current is None:
            raise ApiException(status=404, reason="Not Found")
        if body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")
        obj = copy.deepcopy(body)
        obj["metadata"]["resourceVersion"] = self._next_rv()
        self.objects[(namespace, plural, name)] = obj
        return copy.deepcopy(obj)

    def count(self, verb):
        return sum(1 for v, _ in self.calls if v == verb)
