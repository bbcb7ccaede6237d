"""Repository identity shown in the review header.

Resolution order (stops at first success):
  1. ``org/repo`` parsed from the ``origin`` remote URL
  2. the git repository root's directory name
  3. the current working directory's name (no branch: not a git repo)
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from reviewgate_core.git.diff import _output_or_none, get_current_branch

# git@github.com:org/repo.git and ssh://git@host:22/org/repo.git
_SSH_RE = re.compile(r":(?:\d+/)?([^/:]+/[^/]+?)(?:\.git)?/?$")
# https://github.com/org/repo.git
_HTTPS_RE = re.compile(r"/([^/]+/[^/]+?)(?:\.git)?/?$")


@dataclass
class RepoInfo:
    display: str
    branch: str | None = None

    def to_dict(self) -> dict:
        return {"display": self.display, "branch": self.branch}


def parse_remote_url(url: str) -> str | None:
    if not url:
        return None
    if "://" not in url:
        match = _SSH_RE.search(url)
        if match:
            return match.group(1)
    match = _HTTPS_RE.search(url)
    if match:
        return match.group(1)
    return None


def _dir_name(path: str) -> str | None:
    if not path:
        return None
    name = Path(path.strip().rstrip("/")).name
    return name or None


def get_repo_info(cwd: str | None = None) -> RepoInfo | None:
    remote = _output_or_none(["remote", "get-url", "origin"], cwd=cwd)
    org_repo = parse_remote_url(remote) if remote else None
    if org_repo:
        return RepoInfo(display=org_repo, branch=get_current_branch(cwd=cwd))

    top_level = _output_or_none(["rev-parse", "--show-toplevel"], cwd=cwd)
    repo_name = _dir_name(top_level) if top_level else None
    if repo_name:
        return RepoInfo(display=repo_name, branch=get_current_branch(cwd=cwd))

    dir_name = _dir_name(cwd or os.getcwd())
    if dir_name:
        return RepoInfo(display=dir_name)
    return None
