"""Tests replaying patches onto a release branch in a real workspace."""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import asyncio
import os
import subprocess

import pytest
from repo_helpers import RELEASE_BRANCH, git_sync

from git_backport.cherry_pick import apply_patches
from git_backport.conflict_analysis import analyze
from git_backport.errors import TargetBranchError

TEMP_BRANCH = "backport/1-x-y-bp-fix-beta-1"


def read_file(workspace, name="lib.txt"):
    with open(os.path.join(workspace.directory, name), "r") as f:
        return f.read()


def test_single_clean_patch_adds_one_commit(provisioner, upstream_repo):
    """A clean patch results in exactly one new commit on top of the target branch."""

    async def scenario():
        async with provisioner.scoped("owner/repo", "token") as workspace:
            result = await apply_patches(workspace, RELEASE_BRANCH, [upstream_repo.clean_patch], TEMP_BRANCH)
            log_output = git_sync(workspace.directory, "rev-list", f"{upstream_repo.release_tip}..HEAD")
            branch = git_sync(workspace.directory, "rev-parse", "--abbrev-ref", "HEAD").strip()
            return result, log_output.splitlines(), branch, read_file(workspace, "other.txt"), read_file(workspace)

    result, new_commits, branch, other, content = asyncio.run(scenario())

    assert result.clean
    assert result.applied == 1
    assert not result.pushed
    assert result.base_commit == upstream_repo.release_tip
    assert len(new_commits) == 1
    assert branch == TEMP_BRANCH
    assert "beta fixed" in other
    assert "line 15 on release" in content


def test_stop_at_first_conflicting_patch(provisioner, upstream_repo):
    """The second patch conflicts, only the first one is committed, markers stay in the tree."""

    async def scenario():
        async with provisioner.scoped("owner/repo", "token") as workspace:
            result = await apply_patches(
                workspace,
                RELEASE_BRANCH,
                [upstream_repo.clean_patch, upstream_repo.conflicting_patch],
                TEMP_BRANCH,
                push=True,
            )
            new_commits = git_sync(workspace.directory, "rev-list", f"{upstream_repo.release_tip}..HEAD").splitlines()
            committed_other = git_sync(workspace.directory, "show", "HEAD:other.txt")
            committed = git_sync(workspace.directory, "show", "HEAD:lib.txt")
            report = await analyze(workspace)
            return result, new_commits, committed_other, committed, read_file(workspace), report

    result, new_commits, committed_other, committed, working_tree, report = asyncio.run(scenario())

    assert not result.clean
    assert result.applied == 1
    assert result.failed_index == 1
    assert not result.pushed
    assert len(new_commits) == 1
    assert "beta fixed" in committed_other
    assert "line 15 on main" not in committed
    assert "<<<<<<<" in working_tree

    assert len(report.annotations) == 1
    annotation = report.annotations[0]
    assert annotation.path == "lib.txt"
    assert annotation.start_line == 15
    assert annotation.annotation_level == "failure"
    assert annotation.raw_details.splitlines()[0].startswith("+<<<<<<<")
    assert annotation.raw_details.splitlines()[-1].startswith("+>>>>>>>")
    assert "line 15 on main" in annotation.raw_details
    assert "line 15 on main" in report.raw_diff

    # Nothing was pushed to the origin
    remote_branches = git_sync(upstream_repo.origin, "branch", "--list", "backport/*")
    assert remote_branches.strip() == ""


def test_clean_patches_are_pushed(provisioner, upstream_repo):
    """Applying cleanly with push enabled creates the branch on the target remote."""

    async def scenario():
        async with provisioner.scoped("owner/repo", "token") as workspace:
            result = await apply_patches(workspace, RELEASE_BRANCH, [upstream_repo.clean_patch], TEMP_BRANCH, push=True)
            head = git_sync(workspace.directory, "rev-parse", "HEAD").strip()
            return result, head

    result, head = asyncio.run(scenario())

    assert result.clean
    assert result.pushed
    assert git_sync(upstream_repo.origin, "rev-parse", f"refs/heads/{TEMP_BRANCH}").strip() == head


def test_missing_target_branch(provisioner, upstream_repo):
    """Backporting to a branch the remote does not have fails before applying anything."""

    async def scenario():
        async with provisioner.scoped("owner/repo", "token") as workspace:
            await apply_patches(workspace, "99-x-y", [upstream_repo.clean_patch], TEMP_BRANCH)

    with pytest.raises(TargetBranchError):
        asyncio.run(scenario())


def test_latin1_patch_applies_byte_exact(provisioner, upstream_repo):
    """Patches are handed to git am as bytes, so non UTF-8 content survives."""
    content = b"caf\xe9\n"
    with open(os.path.join(upstream_repo.clone, "latin.txt"), "wb") as f:
        f.write(content)
    git_sync(upstream_repo.clone, "add", "latin.txt")
    git_sync(upstream_repo.clone, "commit", "-q", "-m", "Add Latin-1 file")
    patch = subprocess.run(
        ["git", "format-patch", "-1", "--stdout", "HEAD"], cwd=upstream_repo.clone, capture_output=True, check=True
    ).stdout

    async def scenario():
        async with provisioner.scoped("owner/repo", "token") as workspace:
            result = await apply_patches(workspace, RELEASE_BRANCH, [patch], TEMP_BRANCH)
            with open(os.path.join(workspace.directory, "latin.txt"), "rb") as f:
                return result, f.read()

    result, applied = asyncio.run(scenario())

    assert result.clean
    assert applied == content
