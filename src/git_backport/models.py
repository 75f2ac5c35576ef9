"""
Data passed between the backport engine and its callers.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from git_backport.errors import BackportError


class BackportPurpose(Enum):
    """Whether a job only checks a backport, or creates it."""

    CHECK = "check"
    EXECUTE_BACKPORT = "execute-backport"


@dataclass(frozen=True)
class BackportJob:
    """A request to backport one pull request to one target branch."""

    slug: str
    pr_number: int
    pr_title: str
    head_sha: str
    target_branch: str
    purpose: BackportPurpose
    commits: Tuple[str, ...] = ()
    label_to_add: Optional[str] = None
    label_to_remove: Optional[str] = None

    def __post_init__(self):
        # Callers often hand in lists, keep the job immutable
        object.__setattr__(self, "commits", tuple(self.commits))

    @property
    def key(self) -> str:
        """Jobs with the same key must never run at the same time."""
        return f"backport-{self.head_sha}-{self.target_branch}-{self.purpose.value}"

    @property
    def description(self) -> str:
        return f'backport from PR #{self.pr_number} to "{self.target_branch}"'


@dataclass(frozen=True)
class ConflictAnnotation:
    """Location and content of a conflict, in the shape of a check run annotation."""

    path: str
    start_line: int
    end_line: int
    raw_details: str
    annotation_level: str = "failure"
    message: str = "Patch Conflict"

    def as_dict(self) -> dict:
        return {
            "path": self.path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "annotation_level": self.annotation_level,
            "message": self.message,
            "raw_details": self.raw_details,
        }


class OutcomeStatus(Enum):
    CLEAN = "clean"
    CONFLICTED = "conflicted"
    ERROR = "error"


@dataclass(frozen=True)
class JobOutcome:
    """Result of a single backport job, consumed once by the caller."""

    status: OutcomeStatus
    temp_branch: Optional[str] = None
    pushed: bool = False
    annotations: Tuple[ConflictAnnotation, ...] = field(default_factory=tuple)
    raw_diff: str = ""
    error: Optional[BaseException] = None
    error_kind: Optional[str] = None

    @classmethod
    def clean(cls, temp_branch: str, pushed: bool = False) -> "JobOutcome":
        return cls(status=OutcomeStatus.CLEAN, temp_branch=temp_branch, pushed=pushed)

    @classmethod
    def conflicted(cls, annotations, raw_diff: str, temp_branch: str = None) -> "JobOutcome":
        return cls(
            status=OutcomeStatus.CONFLICTED,
            temp_branch=temp_branch,
            annotations=tuple(annotations),
            raw_diff=raw_diff,
        )

    @classmethod
    def failed(cls, error: BaseException, kind: str = None) -> "JobOutcome":
        """Wrap an error, using the kind of a BackportError if none is given."""
        if kind is None:
            kind = error.kind if isinstance(error, BackportError) else "internal-error"
        return cls(status=OutcomeStatus.ERROR, error=error, error_kind=kind)

    @property
    def is_clean(self) -> bool:
        return self.status == OutcomeStatus.CLEAN

    @property
    def is_conflicted(self) -> bool:
        return self.status == OutcomeStatus.CONFLICTED
