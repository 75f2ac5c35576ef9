"""Fixtures shared by all tests."""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

from repo_helpers import provisioner, upstream_repo  # noqa: F401
