"""
Replay the patches of a pull request onto a branch cut from the target branch.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from git_backport import TARGET_REMOTE_NAME
from git_backport.errors import PushFailure, TargetBranchError
from git_backport.git_commands import git_am, git_create_branch, git_fetch_branch, git_push, git_rev_parse
from git_backport.workspace import Workspace

log = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """What happened when replaying patches onto the temporary branch."""

    temp_branch: str
    clean: bool
    applied: int = 0
    failed_index: Optional[int] = None
    pushed: bool = False
    base_commit: Optional[str] = None
    stderr: str = ""


async def checkout_temp_branch(
    workspace: Workspace, target_branch: str, temp_branch: str, target_remote: str = TARGET_REMOTE_NAME
) -> Optional[str]:
    """Create temp_branch from the tip of the remote target branch, return the base commit."""

    success, stderr = await git_fetch_branch(workspace.directory, target_remote, target_branch)
    if not success:
        raise TargetBranchError(f"Failed to fetch branch {target_branch} from {target_remote}: {stderr}")

    start_point = f"{target_remote}/{target_branch}"
    log.info('%s: Checking out target: "%s" to temp: "%s"', workspace.slug, start_point, temp_branch)
    success, stderr = await git_create_branch(workspace.directory, temp_branch, start_point)
    if not success:
        raise TargetBranchError(f"Failed to create branch {temp_branch} from {start_point}: {stderr}")
    return await git_rev_parse(workspace.directory, "HEAD")


async def apply_patches(
    workspace: Workspace,
    target_branch: str,
    patches: Sequence[Union[str, bytes]],
    temp_branch: str,
    push: bool = False,
    target_remote: str = TARGET_REMOTE_NAME,
) -> ApplyResult:
    """
    Apply patches one after the other on a new branch, and push the branch if requested.

    Patches are applied in the given order, each one creating a commit. Applying
    stops at the first patch that does not apply; its conflicts stay in the working
    tree for inspection, and nothing is pushed.
    """

    base_commit = await checkout_temp_branch(workspace, target_branch, temp_branch, target_remote)
    result = ApplyResult(temp_branch=temp_branch, clean=True, base_commit=base_commit)

    log.info("%s: Will start backporting %d patches now", workspace.slug, len(patches))
    for index, patch_content in enumerate(patches):
        success, stderr = await git_am(workspace.directory, patch_content)
        if not success:
            log.info("%s: Patch %d/%d does not apply cleanly", workspace.slug, index + 1, len(patches))
            log.debug("%s: git am stderr:\n%s", workspace.slug, stderr)
            result.clean = False
            result.failed_index = index
            result.stderr = stderr
            return result
        result.applied += 1
        log.debug("%s: Applied patch %d/%d", workspace.slug, index + 1, len(patches))

    if push:
        success, stderr = await git_push(workspace.directory, target_remote, temp_branch)
        if not success:
            raise PushFailure(f"Failed to push {temp_branch} to {target_remote}: {stderr}")
        result.pushed = True
        log.info("%s: Cherry pick success - pushed up to %s", workspace.slug, target_remote)
    else:
        log.info("%s: Cherry pick success", workspace.slug)
    return result
