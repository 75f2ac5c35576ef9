"""
Ephemeral repositories that backport jobs operate in.

Every job gets a fresh directory with an empty repository and the remotes it
needs. The directory is removed when the job ends, whatever the outcome.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import asyncio
import contextlib
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict

from git_backport import GITHUB_REMOTE_URL_TEMPLATE, TARGET_REMOTE_NAME
from git_backport.errors import WorkspaceInitError
from git_backport.git_commands import git_add_remote, git_init, git_set_config
from git_backport.utils import get_env_var

log = logging.getLogger(__name__)


@dataclass
class Workspace:
    """A repository directory owned by exactly one job."""

    directory: str
    slug: str
    remotes: Dict[str, str] = field(default_factory=dict, repr=False)
    removed: bool = False

    def __str__(self):
        return f"Workspace(slug={self.slug}, directory={self.directory})"


class WorkspaceProvisioner:
    """Create and remove workspaces."""

    def __init__(
        self,
        base_dir: str = None,
        remote_url_template: str = GITHUB_REMOTE_URL_TEMPLATE,
        target_remote: str = TARGET_REMOTE_NAME,
        committer_name: str = None,
        committer_email: str = None,
    ):
        self.base_dir = base_dir or get_env_var("BACKPORT_WORK_DIR")
        self.remote_url_template = remote_url_template
        self.target_remote = target_remote
        self.committer_name = committer_name or get_env_var("BACKPORT_GIT_NAME", "Backport Bot")
        self.committer_email = committer_email or get_env_var("BACKPORT_GIT_EMAIL", "backport-bot@users.noreply.github.com")

    def remote_url(self, slug: str, access_token: str) -> str:
        return self.remote_url_template.format(slug=slug, token=access_token)

    async def provision(self, slug: str, access_token: str) -> Workspace:
        """Return a new workspace with an initialized repository and the target remote."""

        prefix = "backport-" + slug.replace("/", "-") + "-"
        try:
            if self.base_dir:
                os.makedirs(self.base_dir, exist_ok=True)
            directory = tempfile.mkdtemp(prefix=prefix, dir=self.base_dir)
        except OSError as e:
            raise WorkspaceInitError(f"Failed to create workspace directory for {slug}: {e}") from e

        workspace = Workspace(directory=directory, slug=slug)
        try:
            await self._init_repository(workspace, access_token)
        except WorkspaceInitError:
            await self.teardown(workspace)
            raise
        log.debug("%s: Created workspace %s", slug, directory)
        return workspace

    async def _init_repository(self, workspace: Workspace, access_token: str):
        success, stderr = await git_init(workspace.directory)
        if not success:
            raise WorkspaceInitError(f"Failed to initialize repository in {workspace.directory}: {stderr}")

        settings = [
            ("user.name", self.committer_name),
            ("user.email", self.committer_email),
            ("commit.gpgsign", "false"),
        ]
        for name, value in settings:
            success, stderr = await git_set_config(workspace.directory, name, value)
            if not success:
                raise WorkspaceInitError(f"Failed to set git config {name}: {stderr}")

        url = self.remote_url(workspace.slug, access_token)
        success, stderr = await git_add_remote(workspace.directory, self.target_remote, url)
        if not success:
            raise WorkspaceInitError(f"Failed to add remote {self.target_remote}: {stderr}")
        workspace.remotes[self.target_remote] = url

    async def teardown(self, workspace: Workspace):
        """Remove the workspace directory. Removing a workspace twice is a no-op."""
        if workspace.removed:
            log.debug("%s: Workspace %s already removed", workspace.slug, workspace.directory)
            return
        workspace.removed = True
        await asyncio.to_thread(shutil.rmtree, workspace.directory, ignore_errors=True)
        log.debug("%s: Removed workspace %s", workspace.slug, workspace.directory)

    @contextlib.asynccontextmanager
    async def scoped(self, slug: str, access_token: str) -> AsyncIterator[Workspace]:
        """Provide a workspace for the duration of the block, and always remove it afterwards."""
        workspace = await self.provision(slug, access_token)
        try:
            yield workspace
        finally:
            await self.teardown(workspace)
