"""
Git URL Parser
==============
Parses the clone URL found on a build pod into host / organisation / name.

Supported forms:
    https://github.com/org/repo(.git)
    http://host/org/repo
    git://host/org/repo.git
    ssh://git@host(:port)/org/repo.git
    git@host:org/repo.git

Anything else (or a URL missing the org or repo segment) yields None, which
callers treat as "not a build we can track".
"""
import re
from typing import Optional
from urllib.parse import urlparse

from activity_controller.models.build_pod_info import GitInfo

_SCP_RE = re.compile(r"^(?:[\w.\-]+@)?(?P<host>[\w.\-]+):(?P<path>[^/].*)$")
_SCHEMES = ("http", "https", "git", "ssh")


def _split_path(path: str) -> Optional[tuple]:
    path = path.strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    parts = [p for p in path.split("/") if p]
    if len(parts) < 2:
        return None
    # Nested groups (gitlab) keep everything but the last segment as the org
    return "/".join(parts[:-1]), parts[-1]


def parse_git_url(url: str) -> Optional[GitInfo]:
    """
    Parse a git clone URL.

    Parameters
    ----------
    url : str
        The clone URL.

    Returns
    -------
    GitInfo | None
        Parsed repository coordinates, or None when the URL is not understood.
    """
    if not url:
        return None
    url = url.strip()

    parsed = urlparse(url)
    if parsed.scheme in _SCHEMES and parsed.hostname:
        split = _split_path(parsed.path)
        if not split:
            return None
        org, name = split
        return GitInfo(url=url, host=parsed.hostname, organisation=org, name=name)

    if "://" in url:
        return None

    match = _SCP_RE.match(url)
    if match:
        split = _split_path(match.group("path"))
        if not split:
            return None
        org, name = split
        return GitInfo(url=url, host=match.group("host"), organisation=org, name=name)
    return None
