"""
Name Utilities
==============
Deterministic naming for Kubernetes resources and pipeline stages.
"""
from activity_controller.core.constants import BUILD_STEP_PREFIX

# Kubernetes object names are DNS subdomains
MAX_RESOURCE_NAME_LENGTH = 253


def to_valid_name(name: str) -> str:
    """
    Convert an arbitrary string into a valid Kubernetes resource name.

    Letters and digits are lower-cased; every run of other characters
    collapses into a single '-'. Leading and trailing dashes are dropped.

    >>> to_valid_name("jstrachan/Cheese_Master--1")
    'jstrachan-cheese-master-1'
    """
    out = []
    last_dash = True
    for ch in name:
        if ch.isalnum():
            out.append(ch.lower())
            last_dash = False
        elif not last_dash:
            out.append("-")
            last_dash = True
    return "".join(out)[:MAX_RESOURCE_NAME_LENGTH].strip("-")


def title_case(text: str) -> str:
    """Upper-case the first letter of each space separated word, leaving the rest alone."""
    return " ".join(w[:1].upper() + w[1:] for w in text.split(" "))


def stage_title(container_name: str) -> str:
    """
    Human readable stage name for a build step init container.

    >>> stage_title("build-step-git-source-0")
    'Git Source 0'
    """
    name = container_name
    if name.startswith(BUILD_STEP_PREFIX):
        name = name[len(BUILD_STEP_PREFIX):]
    return title_case(name.replace("-", " "))


def digit_suffix(text: str) -> str:
    """
    Trailing run of digits in `text`, or "" if it does not end in a digit.

    >>> digit_suffix("jstrachan-demo-master-12")
    '12'
    """
    end = len(text)
    start = end
    while start > 0 and text[start - 1] in "0123456789":
        start -= 1
    return text[start:end]
