#!/usr/bin/env python3

"""
The backport engine.

A job is executed in a fresh workspace: the patches of all commits of the pull
request are downloaded, replayed onto a branch cut from the target branch, and
the result is handed to an OutcomeReporter. Jobs are run through a
JobScheduler, so that two jobs with the same key never run at the same time.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import asyncio
import logging

from git_backport import MAX_BACKPORT_COMMITS, PATCH_FETCH_CONCURRENCY, TEMP_BRANCH_PREFIX
from git_backport.cherry_pick import apply_patches
from git_backport.conflict_analysis import analyze
from git_backport.errors import BackportError, EmptyCommitSet
from git_backport.models import BackportJob, BackportPurpose, JobOutcome, OutcomeStatus
from git_backport.patch_fetcher import check_commit_count, fetch_patches
from git_backport.scheduler import JobScheduler
from git_backport.utils import make_temp_branch_name
from git_backport.workspace import WorkspaceProvisioner

log = logging.getLogger(__name__)


class OutcomeReporter:
    """
    Receives the outcome of a job, exactly once per job.

    Implementations turn outcomes into effects on the hosting platform, like
    opening the backport pull request, updating a check run, or commenting.
    """

    async def on_clean(self, job: BackportJob, outcome: JobOutcome):
        """The patches applied cleanly; for EXECUTE_BACKPORT, outcome.temp_branch has been pushed."""
        raise NotImplementedError

    async def on_conflict(self, job: BackportJob, outcome: JobOutcome):
        """The patches do not apply, outcome carries annotations and the raw diff."""
        raise NotImplementedError

    async def on_error(self, job: BackportJob, outcome: JobOutcome):
        log.error("%s: %s failed with %s: %s", job.slug, job.description, outcome.error_kind, outcome.error)


class LoggingReporter(OutcomeReporter):
    """Report outcomes to the log only."""

    async def on_clean(self, job: BackportJob, outcome: JobOutcome):
        if outcome.pushed:
            log.info(
                "%s: Pushed %s, open a pull request against %s",
                job.slug,
                outcome.temp_branch,
                job.target_branch,
            )
        else:
            log.info('%s: This PR can be backported to "%s" cleanly', job.slug, job.target_branch)

    async def on_conflict(self, job: BackportJob, outcome: JobOutcome):
        log.info(
            '%s: This PR could not be automatically backported to "%s" cleanly (%d conflicts)',
            job.slug,
            job.target_branch,
            len(outcome.annotations),
        )
        for annotation in outcome.annotations:
            log.info("%s:%d-%d: %s", annotation.path, annotation.start_line, annotation.end_line, annotation.message)
        log.debug("Failed diff:\n%s", outcome.raw_diff)


class BackportRunner:
    """Execute backport jobs."""

    def __init__(
        self,
        scheduler: JobScheduler,
        provisioner=None,
        fetcher=fetch_patches,
        patch_concurrency: int = PATCH_FETCH_CONCURRENCY,
        branch_prefix: str = TEMP_BRANCH_PREFIX,
        commit_limit: int = MAX_BACKPORT_COMMITS,
    ):
        if provisioner is None:
            provisioner = WorkspaceProvisioner()
        self.scheduler = scheduler
        self.provisioner = provisioner
        self.fetcher = fetcher
        self.patch_concurrency = patch_concurrency
        self.branch_prefix = branch_prefix
        self.commit_limit = commit_limit

    def submit(self, job: BackportJob, access_token: str, reporter: OutcomeReporter = None) -> asyncio.Task:
        """Queue the job behind other jobs with the same key, return the task producing its outcome."""
        log.info('Queuing %s for "%s"', job.description, job.slug)

        async def work():
            return await self.run(job, access_token, reporter)

        async def on_failure(error: BaseException):
            log.error("%s: Aborting %s with exception %s", job.slug, job.description, error)
            log.debug("Exception with stack trace:", exc_info=error)
            return JobOutcome.failed(error)

        return self.scheduler.submit(job.key, work, on_failure)

    async def run(self, job: BackportJob, access_token: str, reporter: OutcomeReporter = None) -> JobOutcome:
        """Execute the job right away, and report the outcome."""
        log.info("%s: Executing %s", job.slug, job.description)
        try:
            outcome = await self._execute(job, access_token)
        except BackportError as e:
            outcome = JobOutcome.failed(e)
        except Exception as e:
            log.error("%s: Aborting %s with exception %s", job.slug, job.description, e)
            log.debug("Exception with stack trace:", exc_info=True)
            outcome = JobOutcome.failed(e)

        if outcome.status == OutcomeStatus.ERROR and isinstance(outcome.error, EmptyCommitSet):
            log.info("%s: Found no commits to backport - aborting backport process", job.slug)
            return outcome

        if reporter is not None:
            await self._report(reporter, job, outcome)
        return outcome

    async def _execute(self, job: BackportJob, access_token: str) -> JobOutcome:
        check_commit_count(job.commits, self.commit_limit)

        async with self.provisioner.scoped(job.slug, access_token) as workspace:
            log.info("%s: Working directory cleaned: %s", job.slug, workspace.directory)

            patches = await self.fetcher(job.commits, job.slug, access_token, concurrency=self.patch_concurrency)

            temp_branch = make_temp_branch_name(job.target_branch, job.pr_title, prefix=self.branch_prefix)
            result = await apply_patches(
                workspace,
                job.target_branch,
                patches,
                temp_branch,
                push=job.purpose == BackportPurpose.EXECUTE_BACKPORT,
                target_remote=self.provisioner.target_remote,
            )
            if result.clean:
                return JobOutcome.clean(temp_branch, pushed=result.pushed)

            # Conflicts are only visible until the workspace is removed
            report = await analyze(workspace)
            log.info(
                "%s: Patch %d of %d conflicts, found %d annotations",
                job.slug,
                result.failed_index + 1,
                len(patches),
                len(report.annotations),
            )
            return JobOutcome.conflicted(report.annotations, report.raw_diff, temp_branch=temp_branch)

    async def _report(self, reporter: OutcomeReporter, job: BackportJob, outcome: JobOutcome):
        if outcome.status == OutcomeStatus.CLEAN:
            await reporter.on_clean(job, outcome)
        elif outcome.status == OutcomeStatus.CONFLICTED:
            await reporter.on_conflict(job, outcome)
        else:
            await reporter.on_error(job, outcome)
