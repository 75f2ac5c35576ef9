"""
Module locating conflict markers in the diff of a failed backport.

The working tree diff of a workspace is parsed into files and hunks. Each hunk
is scanned for conflict regions, which look like this in the diff:

    +<<<<<<< HEAD
     code on the target branch
    +=======
    +code of the backported patch
    +>>>>>>> Commit subject

Every complete region results in one annotation. Hunks without a complete
region, and binary files, are skipped.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Tuple

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

from git_backport.git_commands import git_working_tree_diff
from git_backport.models import ConflictAnnotation
from git_backport.workspace import Workspace

log = logging.getLogger(__name__)

START_MARKER = "<<<<<<<"
SEPARATOR_MARKER = "======="
END_MARKER = ">>>>>>>"

# Scanner states
BEFORE = "before"
IN_OURS = "in-ours"
IN_THEIRS = "in-theirs"


@dataclass
class ConflictReport:
    annotations: List[ConflictAnnotation] = field(default_factory=list)
    raw_diff: str = ""


def find_conflict_regions(hunk_lines: List[str]) -> Iterator[Tuple[int, int, int]]:
    """Yield (start, separator, end) offsets of every complete conflict region in the hunk lines."""

    state = BEFORE
    start = separator = None
    for offset, line in enumerate(hunk_lines):
        if state == BEFORE:
            if START_MARKER in line:
                start = offset
                state = IN_OURS
        elif state == IN_OURS:
            if SEPARATOR_MARKER in line:
                separator = offset
                state = IN_THEIRS
            elif START_MARKER in line:
                # Unterminated region, restart at the new marker
                start = offset
        elif state == IN_THEIRS:
            if END_MARKER in line:
                yield start, separator, offset
                state = BEFORE
                start = separator = None


def _strip_path_prefix(path: str) -> str:
    if path.startswith(("a/", "b/")):
        return path[2:]
    return path


def parse_conflict_annotations(raw_diff: str) -> List[ConflictAnnotation]:
    """Return one annotation per conflict region found in the given diff text."""

    if not raw_diff or not raw_diff.strip():
        return []

    try:
        patch_set = PatchSet(raw_diff)
    except UnidiffParseError as e:
        log.warning("Failed to parse conflict diff: %s", e)
        return []

    annotations = []
    for patched_file in patch_set:
        if patched_file.is_binary_file:
            log.debug("Skipping binary file %s", patched_file.path)
            continue

        path = _strip_path_prefix(patched_file.target_file)
        if path == "/dev/null":
            path = _strip_path_prefix(patched_file.source_file)

        for hunk in patched_file:
            hunk_lines = [str(line).rstrip("\n") for line in hunk]
            for start, separator, end in find_conflict_regions(hunk_lines):
                start_line = hunk.target_start + start
                end_line = max(start_line, hunk.target_start + separator - 2)
                annotations.append(
                    ConflictAnnotation(
                        path=path,
                        start_line=start_line,
                        end_line=end_line,
                        raw_details="\n".join(hunk_lines[start : end + 1]),
                    )
                )

    log.debug("Found %d conflict annotations", len(annotations))
    return annotations


async def analyze(workspace: Workspace) -> ConflictReport:
    """Collect the conflicts left in the working tree of a workspace."""
    raw_diff = await git_working_tree_diff(workspace.directory)
    if raw_diff is None:
        return ConflictReport()
    return ConflictReport(annotations=parse_conflict_annotations(raw_diff), raw_diff=raw_diff)
