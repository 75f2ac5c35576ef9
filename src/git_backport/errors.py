"""
Errors that end a backport job.

A conflict is not an error: it is reported through the CONFLICTED outcome.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0


class BackportError(RuntimeError):
    """Base class for failures of a backport job."""

    kind = "backport-error"


class EmptyCommitSet(BackportError):
    """The pull request has no commits, there is nothing to backport."""

    kind = "empty-commit-set"

    def __init__(self):
        super().__init__("Found no commits to backport")


class TooManyCommits(BackportError):
    """The pull request is too large to be backported automatically."""

    kind = "too-many-commits"

    def __init__(self, count: int, limit: int):
        super().__init__(f"Too many commits ({count}), at most {limit - 1} can be backported automatically")
        self.count = count
        self.limit = limit


class WorkspaceInitError(BackportError):
    kind = "workspace-init"


class PatchFetchError(BackportError):
    """Retrieving the patch of a single commit failed."""

    kind = "patch-fetch"

    def __init__(self, commit: str, reason: str):
        super().__init__(f"Failed to fetch patch for commit {commit}: {reason}")
        self.commit = commit
        self.reason = reason


class TargetBranchError(BackportError):
    """The target branch cannot be fetched or checked out."""

    kind = "target-branch"


class PushFailure(BackportError):
    """The remote rejected the push of a cleanly applied backport."""

    kind = "push-failure"


class GitHubApiError(BackportError):
    kind = "github-api"

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status
