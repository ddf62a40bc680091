"""Project prefix derivation from git remote URLs."""

import re

_SEPARATORS = re.compile(r"[-_]")


def parse_repo_name(url: str) -> str:
    """
    Extract the repository name from a remote URL.

    Handles SSH (``git@github.com:user/project.git``), HTTPS
    (``https://github.com/user/project.git``) and local paths.

    Raises:
        ValueError: If no name can be extracted.
    """
    tail = url.strip().rstrip("/").rsplit("/", 1)[-1]
    tail = tail.rsplit(":", 1)[-1]

    if tail.endswith(".git"):
        tail = tail[: -len(".git")]

    if not tail:
        raise ValueError(f"Cannot parse remote URL: {url}")

    return tail


def to_acronym(name: str) -> str:
    """
    Acronym-encode a repository name.

    ``my-project`` -> ``mp``, ``foo-bar_baz`` -> ``fbb``. Names without a
    separator are returned unchanged.
    """
    parts = _SEPARATORS.split(name)

    if len(parts) == 1:
        return name

    return "".join(part[0] for part in parts if part).lower()


def to_prefix(url: str) -> str:
    """Derive the short project prefix used to name worktree directories."""
    return to_acronym(parse_repo_name(url))
