#!/usr/bin/env python3

"""
Backport a merged pull request to a maintenance branch.

The commits of the pull request are downloaded as patches, and applied one by
one on a new branch that starts at the tip of the target branch. With --check,
the tool only reports whether the backport applies cleanly. With --execute, the
new branch is pushed, so that a pull request can be opened from it.

In case the patches do not apply, the conflicting regions are reported, and the
backport has to be performed manually.

The GitHub access token is read from the GITHUB_TOKEN environment variable.

Usage:
    git-backport --repo owner/name --pr 1234 --target-branch 12-x-y [--check | --execute]
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import argparse
import asyncio
import logging
import sys

from git_backport import NUM_SUPPORTED_VERSIONS, PATCH_FETCH_CONCURRENCY, SUPPORTED_BRANCH_PATTERN
from git_backport.backport import BackportRunner, LoggingReporter
from git_backport.github_client import GitHubClient
from git_backport.models import BackportJob, BackportPurpose
from git_backport.scheduler import JobScheduler
from git_backport.utils import get_env_var
from git_backport.workspace import WorkspaceProvisioner

log = logging.getLogger(__name__)


def parse_args(args_override: list = None):
    """Parse command-line arguments."""

    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)

    parser.add_argument("--repo", required=True, help="Repository slug, in the form owner/name")
    parser.add_argument("--pr", required=True, type=int, help="Number of the pull request to backport")
    parser.add_argument("--target-branch", required=True, help="Branch to backport the pull request to")
    purpose = parser.add_mutually_exclusive_group()
    purpose.add_argument(
        "--check",
        dest="purpose",
        action="store_const",
        const=BackportPurpose.CHECK,
        help="Only check whether the backport applies cleanly (default)",
    )
    purpose.add_argument(
        "--execute",
        dest="purpose",
        action="store_const",
        const=BackportPurpose.EXECUTE_BACKPORT,
        help="Push the backport branch to the repository",
    )
    parser.set_defaults(purpose=BackportPurpose.CHECK)
    parser.add_argument(
        "--no-eol-support",
        default=bool(get_env_var("NO_EOL_SUPPORT")),
        action="store_true",
        help="Refuse to backport to branches that are no longer supported (default: %(default)s)",
    )
    parser.add_argument(
        "--supported-branch-pattern",
        default=get_env_var("SUPPORTED_BRANCH_PATTERN", SUPPORTED_BRANCH_PATTERN),
        help="Regular expression for release branches (default: %(default)s)",
    )
    parser.add_argument(
        "--supported-versions",
        type=int,
        default=int(get_env_var("NUM_SUPPORTED_VERSIONS", str(NUM_SUPPORTED_VERSIONS))),
        help="Number of supported major versions (default: %(default)d)",
    )
    parser.add_argument(
        "--patch-concurrency",
        type=int,
        default=PATCH_FETCH_CONCURRENCY,
        help="Number of patches to download in parallel (default: %(default)d)",
    )
    parser.add_argument(
        "--work-dir",
        type=str,
        default=None,
        help="Create workspaces below this directory (default: system temporary directory)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: %(default)s)",
    )
    return parser.parse_args(args_override)


async def backport_pull_request(
    slug: str,
    pr_number: int,
    target_branch: str,
    purpose: BackportPurpose,
    access_token: str,
    no_eol_support: bool = False,
    supported_branch_pattern: str = SUPPORTED_BRANCH_PATTERN,
    supported_versions: int = NUM_SUPPORTED_VERSIONS,
    patch_concurrency: int = PATCH_FETCH_CONCURRENCY,
    work_dir: str = None,
    github_client: GitHubClient = None,
    runner: BackportRunner = None,
) -> int:
    """
    Look up the pull request, run the backport job, and return the exit code.

    Args:
        slug: owner/name of the repository
        pr_number: number of the pull request to backport
        target_branch: branch to apply the pull request to
        purpose: only check the backport, or push the result
        access_token: GitHub token, used for the API and the git remote
        no_eol_support: refuse branches that are not among the supported release branches
        supported_branch_pattern: regular expression matching release branches
        supported_versions: number of supported major versions
        patch_concurrency: number of parallel patch downloads
        work_dir: parent directory of workspaces
        github_client: client to use instead of creating one
        runner: runner to use instead of creating one

    Returns:
        int: 0 for a clean backport, 1 otherwise
    """

    async with github_client or GitHubClient(access_token) as github:
        if not await github.branch_exists(slug, target_branch):
            log.error('The branch you provided "%s" does not appear to exist', target_branch)
            return 1

        if no_eol_support:
            supported = await github.get_supported_branches(slug, supported_branch_pattern, supported_versions)
            if target_branch not in supported:
                log.error("%s is no longer supported - no backport will be initiated", target_branch)
                return 1

        pr = await github.get_pull_request(slug, pr_number)
        commits = await github.list_pull_request_commits(slug, pr_number)

    job = BackportJob(
        slug=slug,
        pr_number=pr_number,
        pr_title=pr.get("title", ""),
        head_sha=pr["head"]["sha"],
        target_branch=target_branch,
        purpose=purpose,
        commits=commits,
    )

    if runner is None:
        runner = BackportRunner(
            JobScheduler(),
            provisioner=WorkspaceProvisioner(base_dir=work_dir),
            patch_concurrency=patch_concurrency,
        )
    outcome = await runner.submit(job, access_token, LoggingReporter())
    return 0 if outcome.is_clean else 1


def main(args_override: list = None):
    """Main function to run a backport from the command line."""

    args = parse_args(args_override)

    if args.log_level == "DEBUG":
        logging.basicConfig(
            level=args.log_level,
            format="[%(levelname)-7s] %(asctime)s %(name)s:%(lineno)d %(message)s",
        )
    elif args.log_level == "INFO":
        logging.basicConfig(
            level=args.log_level,
            format="[%(levelname)-7s] %(message)s",
        )
    else:
        logging.basicConfig(
            level=args.log_level,
            format="%(message)s",
        )

    access_token = get_env_var("GITHUB_TOKEN")
    if not access_token:
        log.error("error: No access token given, set the GITHUB_TOKEN environment variable")
        return 1

    try:
        return asyncio.run(
            backport_pull_request(
                slug=args.repo,
                pr_number=args.pr,
                target_branch=args.target_branch,
                purpose=args.purpose,
                access_token=access_token,
                no_eol_support=args.no_eol_support,
                supported_branch_pattern=args.supported_branch_pattern,
                supported_versions=args.supported_versions,
                patch_concurrency=args.patch_concurrency,
                work_dir=args.work_dir,
            )
        )
    except Exception as e:
        log.error("Aborting with exception %s", e)
        log.debug("Exception with stack trace:", exc_info=True)
    return 1


if __name__ == "__main__":
    app_status = main()
    log.info("Exit git-backport with status %d", app_status)
    sys.exit(app_status)
