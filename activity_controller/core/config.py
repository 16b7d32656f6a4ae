"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    BUILD_CONTROLLER_NAMESPACE: Namespace to watch when --namespace is not given (default: jx)
    RETRY_TIMEOUT_SECONDS     : Overall budget for one get/update/retry cycle (default: 20)
    RETRY_INTERVAL_SECONDS    : Fixed wait between retries in that cycle (default: 2)
    RESYNC_PERIOD_SECONDS     : Length of one watch session; pods are re-delivered after it (default: 600)
    WORKER_COUNT              : Max pods reconciled concurrently (default: 4)
    GIT_TOKEN                 : Token used to push build logs over https
    GIT_TIMEOUT_SECONDS       : Limit for any single git command run by the log publisher (default: 120)
    GIT_USER_NAME / GIT_USER_EMAIL: Committer identity for build log commits
    LOGS_GIT_URL              : Overrides the git repository build logs are published to
    LOGS_PAGES_BRANCH         : Branch holding published logs (default: gh-pages)
    HEALTH_PORT               : Port of the /health and /status endpoints (default: 8080)
    LOG_DIR                   : Directory for daily log files; console only when unset

Retry Philosophy:
    Activity updates use optimistic concurrency. A conflicting write is retried
    from a fresh read until RETRY_TIMEOUT_SECONDS is spent, then the event is
    dropped; the next delivery of the same pod redoes the whole computation.
"""
import os
from dotenv import load_dotenv

load_dotenv()

BUILD_CONTROLLER_NAMESPACE = os.getenv("BUILD_CONTROLLER_NAMESPACE", "jx")

RETRY_TIMEOUT_SECONDS = float(os.getenv("RETRY_TIMEOUT_SECONDS", 20))
RETRY_INTERVAL_SECONDS = float(os.getenv("RETRY_INTERVAL_SECONDS", 2))

# Each watch session replays all pods; 10 minutes between full resyncs
RESYNC_PERIOD_SECONDS = int(os.getenv("RESYNC_PERIOD_SECONDS", 600))
WORKER_COUNT = int(os.getenv("WORKER_COUNT", 4))

# Build log publishing
GIT_TOKEN = os.getenv("GIT_TOKEN", "")
GIT_TIMEOUT_SECONDS = float(os.getenv("GIT_TIMEOUT_SECONDS", 120))
GIT_USER_NAME = os.getenv("GIT_USER_NAME", "jenkins-x-bot")
GIT_USER_EMAIL = os.getenv("GIT_USER_EMAIL", "jenkins-x@googlegroups.com")
LOGS_GIT_URL = os.getenv("LOGS_GIT_URL", "")
LOGS_PAGES_BRANCH = os.getenv("LOGS_PAGES_BRANCH", "gh-pages")

HEALTH_PORT = int(os.getenv("HEALTH_PORT", 8080))
LOG_DIR = os.getenv("LOG_DIR", "")
