"""
Download the patches of a list of commits from GitHub.

Requests run concurrently, but each patch is stored at the position of its
commit, so the result always follows the order of the input list. Patches are
kept as raw bytes, they are handed to git am without decoding.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import asyncio
import logging
from typing import List, Sequence

import aiohttp

from git_backport import GITHUB_API_URL, MAX_BACKPORT_COMMITS, PATCH_FETCH_CONCURRENCY
from git_backport.errors import EmptyCommitSet, PatchFetchError, TooManyCommits

log = logging.getLogger(__name__)

PATCH_MEDIA_TYPE = "application/vnd.github.VERSION.patch"


def check_commit_count(commits: Sequence[str], limit: int = MAX_BACKPORT_COMMITS):
    """Raise if the commit list is empty, or too long to be backported automatically."""
    if len(commits) == 0:
        raise EmptyCommitSet()
    if len(commits) >= limit:
        raise TooManyCommits(len(commits), limit)


async def fetch_patch(session, commit: str, slug: str, access_token: str, api_url: str = GITHUB_API_URL) -> bytes:
    """Return the patch of a single commit."""
    url = f"{api_url}/repos/{slug}/commits/{commit}"
    headers = {
        "Accept": PATCH_MEDIA_TYPE,
        "Authorization": f"token {access_token}",
    }
    try:
        async with session.get(url, headers=headers) as response:
            if response.status != 200:
                raise PatchFetchError(commit, f"HTTP status {response.status}")
            patch_data = await response.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise PatchFetchError(commit, repr(e)) from e

    if not patch_data:
        raise PatchFetchError(commit, "empty patch")
    return patch_data


async def fetch_patches(
    commits: Sequence[str],
    slug: str,
    access_token: str,
    concurrency: int = PATCH_FETCH_CONCURRENCY,
    session=None,
    api_url: str = GITHUB_API_URL,
) -> List[bytes]:
    """Return the patches of all commits, in commit order. Fail if any single patch cannot be fetched."""

    check_commit_count(commits)
    if concurrency < 1:
        raise ValueError(f"Patch fetch concurrency must be positive, got {concurrency}")

    if session is None:
        async with aiohttp.ClientSession() as own_session:
            return await _fetch_all(own_session, commits, slug, access_token, concurrency, api_url)
    return await _fetch_all(session, commits, slug, access_token, concurrency, api_url)


async def _fetch_all(session, commits, slug, access_token, concurrency, api_url) -> List[bytes]:
    log.info("%s: Found %d commits to backport - requesting details now", slug, len(commits))
    patches = [b""] * len(commits)
    semaphore = asyncio.Semaphore(concurrency)
    done = 0

    async def fetch_into_slot(index: int, commit: str):
        nonlocal done
        async with semaphore:
            patches[index] = await fetch_patch(session, commit, slug, access_token, api_url)
        done += 1
        log.debug("%s: Got patch for commit %s (%d/%d)", slug, commit, done, len(commits))

    tasks = [asyncio.ensure_future(fetch_into_slot(i, commit)) for i, commit in enumerate(commits)]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    log.info("%s: Got all commit info", slug)
    return patches
