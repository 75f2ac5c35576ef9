"""Tests for locating conflict regions in working tree diffs."""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

from git_backport.conflict_analysis import find_conflict_regions, parse_conflict_annotations

SINGLE_CONFLICT_DIFF = """diff --git a/src/lib.c b/src/lib.c
index 1234567..abcdefg 100644
--- a/src/lib.c
+++ b/src/lib.c
@@ -10,7 +10,11 @@ int main(void)
 int a;
 int b;
 int c;
+<<<<<<< HEAD
 int d = 1;
+=======
+int d = 2;
+>>>>>>> Change d
 int e;
 int f;
 int g;
"""

TWO_CONFLICTS_DIFF = """diff --git a/lib.txt b/lib.txt
index 1234567..abcdefg 100644
--- a/lib.txt
+++ b/lib.txt
@@ -1,4 +1,12 @@
+<<<<<<< HEAD
 first
+=======
+first changed
+>>>>>>> Patch
 middle
+<<<<<<< HEAD
 last
+=======
+last changed
+>>>>>>> Patch
 end
"""

NO_MARKER_DIFF = """diff --git a/lib.txt b/lib.txt
index 1234567..abcdefg 100644
--- a/lib.txt
+++ b/lib.txt
@@ -1,3 +1,3 @@
 first
-middle
+center
 last
"""

BINARY_AND_TEXT_DIFF = """diff --git a/image.png b/image.png
index 1234567..abcdefg 100644
Binary files a/image.png and b/image.png differ
diff --git a/src/lib.c b/src/lib.c
index 1234567..abcdefg 100644
--- a/src/lib.c
+++ b/src/lib.c
@@ -10,7 +10,11 @@ int main(void)
 int a;
 int b;
 int c;
+<<<<<<< HEAD
 int d = 1;
+=======
+int d = 2;
+>>>>>>> Change d
 int e;
 int f;
 int g;
"""


def test_single_conflict_annotation():
    annotations = parse_conflict_annotations(SINGLE_CONFLICT_DIFF)

    assert len(annotations) == 1
    annotation = annotations[0]
    # Start marker at offset 3, separator at offset 5, end marker at offset 7
    assert annotation.path == "src/lib.c"
    assert annotation.start_line == 10 + 3
    assert annotation.end_line == 10 + 5 - 2
    assert annotation.annotation_level == "failure"
    assert annotation.message == "Patch Conflict"
    assert annotation.raw_details == "\n".join(
        ["+<<<<<<< HEAD", " int d = 1;", "+=======", "+int d = 2;", "+>>>>>>> Change d"]
    )


def test_annotation_as_check_run_dict():
    annotation = parse_conflict_annotations(SINGLE_CONFLICT_DIFF)[0]
    assert annotation.as_dict() == {
        "path": "src/lib.c",
        "start_line": 13,
        "end_line": 13,
        "annotation_level": "failure",
        "message": "Patch Conflict",
        "raw_details": annotation.raw_details,
    }


def test_longer_ours_section_spans_lines():
    lines = ["+<<<<<<< HEAD", " a", " b", " c", "+=======", "+x", "+>>>>>>> P"]
    diff = "diff --git a/f b/f\nindex 1..2 100644\n--- a/f\n+++ b/f\n@@ -5,3 +5,7 @@\n" + "\n".join(lines) + "\n"

    annotations = parse_conflict_annotations(diff)

    assert len(annotations) == 1
    assert annotations[0].start_line == 5
    assert annotations[0].end_line == 5 + 4 - 2


def test_multiple_conflicts_in_one_hunk():
    annotations = parse_conflict_annotations(TWO_CONFLICTS_DIFF)

    assert [(a.start_line, a.end_line) for a in annotations] == [(1, 1), (7, 7)]
    assert annotations[0].raw_details.splitlines()[-2] == "+first changed"
    assert annotations[1].raw_details.splitlines()[-2] == "+last changed"


def test_hunk_without_markers_is_skipped():
    assert parse_conflict_annotations(NO_MARKER_DIFF) == []


def test_binary_files_are_skipped():
    annotations = parse_conflict_annotations(BINARY_AND_TEXT_DIFF)
    assert [a.path for a in annotations] == ["src/lib.c"]


def test_empty_diff():
    assert parse_conflict_annotations("") == []
    assert parse_conflict_annotations("\n") == []


def test_incomplete_regions_are_ignored():
    assert list(find_conflict_regions(["+<<<<<<< HEAD", " a", "+======="])) == []
    assert list(find_conflict_regions(["+=======", " a", "+>>>>>>> P"])) == []
    assert list(find_conflict_regions([" a", "+>>>>>>> P"])) == []


def test_restart_on_repeated_start_marker():
    lines = ["+<<<<<<< HEAD", " a", "+<<<<<<< HEAD", " b", "+=======", "+c", "+>>>>>>> P"]
    assert list(find_conflict_regions(lines)) == [(2, 4, 6)]
