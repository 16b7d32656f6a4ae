"""
Build Pod Info Model
====================
Pydantic models describing one build execution as seen on its pod.

BuildPodInfo is derived, never persisted: it is recomputed on every pod
observation and has no identity beyond the pod it came from.

Fields:
    name           : activity name seed: "<owner>-<repository>-<branch>-<build>"
    pipeline       : "<owner>/<repository>/<branch>"
    build          : build number (defaults to "1")
    git_url        : source repository URL from the git-source init container
    git_info       : parsed host / organisation / repository name
"""
from typing import Optional
from pydantic import BaseModel


class GitInfo(BaseModel):
    url: str
    host: str
    organisation: str
    name: str

    def https_url(self) -> str:
        return f"https://{self.host}/{self.organisation}/{self.name}"


class BuildPodInfo(BaseModel):
    name: str
    pod_name: str = ""
    build_name: str = ""
    pipeline: str = ""
    owner: str = ""
    repository: str = ""
    branch: str = ""
    build: str = ""
    git_url: str = ""
    git_info: Optional[GitInfo] = None
    last_commit_sha: str = ""
    last_commit_message: str = ""
    last_commit_url: str = ""
