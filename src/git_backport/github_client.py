"""
Minimal asynchronous client for the GitHub REST endpoints the backport engine needs.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
import re
from typing import List

import aiohttp

from git_backport import GITHUB_API_URL, NUM_SUPPORTED_VERSIONS, SUPPORTED_BRANCH_PATTERN
from git_backport.errors import GitHubApiError

log = logging.getLogger(__name__)

PAGE_SIZE = 100


class GitHubClient:
    """Access GitHub with a repository access token."""

    def __init__(self, access_token: str, session=None, api_url: str = GITHUB_API_URL):
        self._access_token = access_token
        self._session = session
        self._own_session = session is None
        self._api_url = api_url.rstrip("/")

    async def __aenter__(self):
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *exc_info):
        if self._own_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _headers(self) -> dict:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"token {self._access_token}",
        }

    async def _get(self, path: str, params: dict = None, allow_missing: bool = False):
        """Return the decoded JSON body, or None for a 404 if allow_missing is set."""
        if self._session is None:
            raise RuntimeError("GitHubClient must be used as an async context manager")
        url = f"{self._api_url}{path}"
        log.debug("GET %s %r", url, params)
        try:
            async with self._session.get(url, headers=self._headers(), params=params) as response:
                if allow_missing and response.status == 404:
                    return None
                if response.status != 200:
                    raise GitHubApiError(f"GET {path} failed with HTTP status {response.status}", response.status)
                return await response.json()
        except aiohttp.ClientError as e:
            raise GitHubApiError(f"GET {path} failed: {e!r}") from e

    async def get_pull_request(self, slug: str, number: int) -> dict:
        return await self._get(f"/repos/{slug}/pulls/{number}")

    async def list_pull_request_commits(self, slug: str, number: int) -> List[str]:
        """Return the commit IDs of a pull request, oldest first."""
        commits = []
        page = 1
        while True:
            data = await self._get(f"/repos/{slug}/pulls/{number}/commits", params={"per_page": PAGE_SIZE, "page": page})
            commits.extend(item["sha"] for item in data)
            if len(data) < PAGE_SIZE:
                break
            page += 1
        log.debug("%s: PR #%d has %d commits", slug, number, len(commits))
        return commits

    async def branch_exists(self, slug: str, branch: str) -> bool:
        return await self._get(f"/repos/{slug}/branches/{branch}", allow_missing=True) is not None

    async def list_protected_branches(self, slug: str) -> List[str]:
        names = []
        page = 1
        while True:
            data = await self._get(
                f"/repos/{slug}/branches", params={"protected": "true", "per_page": PAGE_SIZE, "page": page}
            )
            names.extend(item["name"] for item in data)
            if len(data) < PAGE_SIZE:
                break
            page += 1
        return names

    async def get_supported_branches(
        self,
        slug: str,
        pattern: str = SUPPORTED_BRANCH_PATTERN,
        num_versions: int = NUM_SUPPORTED_VERSIONS,
    ) -> List[str]:
        """Return the release branches that still receive backports."""
        return select_supported_branches(await self.list_protected_branches(slug), pattern, num_versions)


def select_supported_branches(
    branch_names: List[str], pattern: str = SUPPORTED_BRANCH_PATTERN, num_versions: int = NUM_SUPPORTED_VERSIONS
) -> List[str]:
    """
    Pick the supported release branches from a list of branch names.

    Only branches matching pattern are considered. For each major version, the
    branch that sorts last is kept, and the num_versions newest majors are returned
    in ascending order.
    """

    branch_regex = re.compile(pattern)
    release_branches = sorted(name for name in branch_names if branch_regex.match(name))

    per_major = {}
    for name in release_branches:
        per_major[name.split("-")[0]] = name

    majors = sorted(per_major, key=lambda major: int(major) if major.isdigit() else -1)
    if num_versions <= 0:
        return []
    return [per_major[major] for major in majors[-num_versions:]]
