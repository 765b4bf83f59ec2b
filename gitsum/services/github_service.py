"""
GitHub content resolution: turn a github.com URL into README or file text.
"""
import logging
import re
import threading
from typing import List, Optional, Tuple

import requests

from gitsum.core.config import settings
from gitsum.core.errors import GitHubFetchError

logger = logging.getLogger(__name__)

GITHUB_URL_PATTERN = re.compile(r"^https://github\.com/[^/]+/[^/]+")
REPOSITORY_URL_PATTERN = re.compile(r"^https://github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$")
OWNER_REPO_PATTERN = re.compile(r"^https://github\.com/([^/]+)/([^/]+)")
FILE_URL_PATTERN = re.compile(r"^https://github\.com/([^/]+)/([^/]+)/(?:blob|raw)/([^/]+)/(.+)$")

COMMON_BRANCHES = ["main", "master", "develop"]
README_CANDIDATES = ["README.md", "README.txt", "README", "readme.md", "Readme.md"]

_session: Optional[requests.Session] = None
_session_lock = threading.Lock()


def get_http_session() -> requests.Session:
    """Shared outbound HTTP session, created once per process."""
    global _session
    if _session is None:
        with _session_lock:
            if _session is None:
                session = requests.Session()
                session.headers.update({"User-Agent": settings.GITHUB_USER_AGENT})
                _session = session
    return _session


def is_github_url(url: str) -> bool:
    return bool(url) and GITHUB_URL_PATTERN.match(url) is not None


def is_repository_url(url: str) -> bool:
    """True for ``https://github.com/owner/repo`` (no blob/raw/tree path)."""
    return REPOSITORY_URL_PATTERN.match(url) is not None


def extract_owner_repo(url: str) -> Optional[Tuple[str, str]]:
    match = REPOSITORY_URL_PATTERN.match(url) or OWNER_REPO_PATTERN.match(url)
    if not match:
        return None
    return match.group(1), match.group(2)


def raw_url(owner: str, repo: str, branch: str, path: str) -> str:
    return f"https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{path}"


def file_url_to_raw(url: str) -> Optional[str]:
    """Convert a blob or raw file URL on github.com to raw.githubusercontent.com."""
    match = FILE_URL_PATTERN.match(url)
    if not match:
        return None
    owner, repo, branch, path = match.groups()
    return raw_url(owner, repo, branch, path)


def _head_ok(url: str) -> bool:
    try:
        response = get_http_session().head(
            url, timeout=settings.GITHUB_TIMEOUT_SECONDS, allow_redirects=True
        )
        return response.ok
    except requests.RequestException:
        return False


def get_default_branch(owner: str, repo: str) -> Optional[str]:
    """Ask the GitHub API for the repository's default branch."""
    try:
        response = get_http_session().get(
            f"https://api.github.com/repos/{owner}/{repo}",
            headers={"Accept": "application/vnd.github.v3+json"},
            timeout=settings.GITHUB_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.warning(f"GitHub API lookup failed for {owner}/{repo}: {e}")
        return None

    if not response.ok:
        logger.info(f"GitHub API returned {response.status_code} for {owner}/{repo}")
        return None
    try:
        return response.json().get("default_branch") or "main"
    except ValueError:
        return "main"


def find_repository_branch(owner: str, repo: str) -> str:
    branch = get_default_branch(owner, repo)
    if branch:
        return branch

    for candidate in COMMON_BRANCHES:
        if _head_ok(raw_url(owner, repo, candidate, "README.md")):
            return candidate
    return "main"


def find_readme_url(owner: str, repo: str, branch: str, candidates: List[str] = README_CANDIDATES) -> str:
    for filename in candidates:
        url = raw_url(owner, repo, branch, filename)
        if _head_ok(url):
            return url
    # Still worth a GET even if every HEAD failed
    return raw_url(owner, repo, branch, "README.md")


def resolve_raw_url(github_url: str) -> Optional[str]:
    """
    Work out which raw file to fetch for a github.com URL.

    Repository URLs resolve to the README on the default branch; blob/raw file
    URLs resolve to the file itself. Anything else yields None.
    """
    if is_repository_url(github_url):
        owner_repo = extract_owner_repo(github_url)
        if not owner_repo:
            return None
        owner, repo = owner_repo
        branch = find_repository_branch(owner, repo)
        return find_readme_url(owner, repo, branch)

    return file_url_to_raw(github_url)


def fetch_content(url: str) -> str:
    """
    Fetch raw text content.

    Raises:
        GitHubFetchError: On network failure or a non-2xx response
    """
    try:
        response = get_http_session().get(
            url,
            headers={"Accept": "application/vnd.github.v3.raw"},
            timeout=settings.GITHUB_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise GitHubFetchError(f"Failed to reach GitHub: {e}") from e

    if not response.ok:
        raise GitHubFetchError(
            f"Failed to fetch file from GitHub (status {response.status_code}): {response.reason}",
            status_code=response.status_code,
        )
    return response.text
