"""
Constants
Label keys, container naming rules and custom resource coordinates.
"""
# Build pod labels
LABEL_BUILD_NAME = "build.knative.dev/buildName"
LABEL_OLD_BUILD_NAME = "build.dev/buildName"

LABEL_OWNER = "owner"
LABEL_REPOSITORY = "repository"
LABEL_BRANCH = "branch"
LABEL_BUILD = "build"

# Init containers
BUILD_STEP_PREFIX = "build-step-"
GIT_SOURCE_CONTAINER_PREFIX = "build-step-git-source"
ARG_URL = "-url"
ARG_REVISION = "-revision"

# PipelineActivity custom resource
CRD_GROUP = "jenkins.io"
CRD_VERSION = "v1"
CRD_KIND = "PipelineActivity"
CRD_PLURAL = "pipelineactivities"
CRD_SINGULAR = "pipelineactivity"
CRD_SHORT_NAMES = ["activity", "act"]
CRD_NAME = f"{CRD_PLURAL}.{CRD_GROUP}"

# Environment custom resource (holds team settings / storage locations)
ENVIRONMENT_PLURAL = "environments"
DEV_ENVIRONMENT_NAME = "dev"
CLASSIFICATION_LOGS = "logs"

STEP_KIND_STAGE = "Stage"

# Annotation naming the pod whose logs were published for an activity
ANNOTATION_BUILD_LOGS_POD = "jenkins.io/build-logs-pod"

LOGS_PATH_PREFIX = "jenkins-x/logs"
DEFAULT_BRANCH = "master"
DEFAULT_BUILD_NUMBER = "1"
