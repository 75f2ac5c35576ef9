#!/usr/bin/env python3

"""
Git command wrapper methods, operating on a given repository directory.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Optional, Tuple, Union

from git_backport.utils import redact_credentials, run_command

log = logging.getLogger(__name__)


async def git(repo_dir: str, *args: str, input_data: str = None) -> Tuple[bool, str, str]:
    """Run git with the given arguments inside repo_dir."""
    return await run_command(["git"] + list(args), cwd=repo_dir, input_data=input_data)


async def git_init(repo_dir: str) -> Tuple[bool, str]:
    """Initialize an empty repository, return success and stderr."""
    success, _, stderr = await git(repo_dir, "init", "--quiet", ".")
    return success, stderr


async def git_set_config(repo_dir: str, name: str, value: str) -> Tuple[bool, str]:
    success, _, stderr = await git(repo_dir, "config", name, value)
    return success, stderr


async def git_add_remote(repo_dir: str, name: str, url: str) -> Tuple[bool, str]:
    """Register a remote. The URL may contain credentials, only report redacted errors."""
    success, _, stderr = await git(repo_dir, "remote", "add", name, url)
    return success, redact_credentials(stderr)


async def git_fetch_branch(repo_dir: str, remote: str, branch: str) -> Tuple[bool, str]:
    """Fetch a single branch from the given remote."""
    success, _, stderr = await git(repo_dir, "fetch", "--quiet", remote, branch)
    return success, redact_credentials(stderr)


async def git_create_branch(repo_dir: str, branch: str, start_point: str) -> Tuple[bool, str]:
    """Create and check out branch at start_point."""
    success, _, stderr = await git(repo_dir, "checkout", "--quiet", "-b", branch, start_point)
    return success, stderr


async def git_am(repo_dir: str, patch_content: Union[str, bytes]) -> Tuple[bool, str]:
    """Apply a mail formatted patch and commit it, falling back to a 3-way merge."""
    success, _, stderr = await git(repo_dir, "am", "-3", "--ignore-whitespace", input_data=patch_content)
    return success, stderr


async def git_push(repo_dir: str, remote: str, branch: str) -> Tuple[bool, str]:
    success, _, stderr = await git(repo_dir, "push", "--set-upstream", remote, branch)
    return success, redact_credentials(stderr)


async def git_working_tree_diff(repo_dir: str) -> Optional[str]:
    """
    Return the diff of the working tree against HEAD, or None on failure.

    Content of files that is not valid UTF-8 shows up with U+FFFD replacement
    characters, line numbers of the diff are not affected.
    """
    success, stdout, stderr = await git(repo_dir, "diff", "HEAD")
    if not success:
        log.warning("Failed to compute working tree diff with stderr: %s", stderr)
        return None
    if "\ufffd" in stdout:
        log.warning("Working tree diff contains content that is not valid UTF-8, it has been replaced")
    return stdout


async def git_rev_parse(repo_dir: str, ref: str) -> Optional[str]:
    """Return the commit ID of the given reference, or None."""
    success, stdout, _ = await git(repo_dir, "rev-parse", "--verify", "--quiet", ref)
    if not success or stdout.strip() == "":
        return None
    return stdout.strip()
