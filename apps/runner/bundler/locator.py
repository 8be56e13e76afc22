"""Repository URL parsing.

Splits a URL that may point inside a monorepo into the URL to clone and
the package directory inside the clone:

    https://github.com/org/repo                         -> clone the repo
    https://github.com/org/repo/tree/main/packages/cli  -> branch "main",
                                                           subdir "packages/cli"

Anything that does not look like either shape is treated as a plain
clone URL. Parsing never fails.
"""

import re

from bundler.types import RepoLocation

_TREE_URL = re.compile(
    r"^(?P<base>https?://[^/]+/[^/]+/[^/]+?)"
    r"(?:/tree/(?P<branch>[^/]+)(?:/(?P<subdir>.*))?)?/?$"
)

GIT_SUFFIX = ".git"


def parse_repo_url(url: str) -> RepoLocation:
    """Split url into clone URL, optional branch and optional subdirectory."""
    url = (url or "").strip()
    match = _TREE_URL.match(url)
    if not match:
        return RepoLocation(clone_url=url)

    subdir = (match.group("subdir") or "").strip("/") or None
    return RepoLocation(
        clone_url=match.group("base"),
        branch=match.group("branch") or None,
        subdirectory=subdir,
    )


def clone_target(clone_url: str) -> str:
    """Return clone_url with the .git suffix appended when missing."""
    if clone_url.endswith(GIT_SUFFIX):
        return clone_url
    return clone_url + GIT_SUFFIX
