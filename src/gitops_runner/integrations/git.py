"""Git subprocess wrappers for checking out branches and merge requests."""

import logging
import subprocess
from pathlib import Path

from gitops_runner.errors import InvalidArgument, IOFailure

logger = logging.getLogger(__name__)

MERGE_REQUEST_REFSPEC = "+refs/merge-requests/*/head:refs/remotes/origin/merge-requests/*"
BRANCH_REFSPEC = "+refs/heads/*:refs/remotes/origin/*"


class GitError(IOFailure):
    """Raised when a git command fails."""


def run_git(args: list[str], cwd: str | Path | None = None) -> str:
    """Run a git command and return stdout. Raises GitError on failure."""
    cmd = ["git"] + args
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except subprocess.CalledProcessError as e:
        raise GitError(f"git {' '.join(args)} failed: {e.stderr.strip()}") from e
    except OSError as e:
        raise GitError(f"git {' '.join(args)} could not be started: {e}") from e


class GitClient:
    """Runs checkouts and queries inside a single job-instance workspace."""

    def __init__(self, workspace: str | Path, user_name: str, user_email: str):
        if not workspace or not user_name or not user_email:
            raise InvalidArgument("GitClient requires a workspace, user name and user email")
        self.workspace = Path(workspace)
        self.user_name = user_name
        self.user_email = user_email

    def _git(self, *args: str) -> str:
        return run_git(list(args), cwd=self.workspace)

    def _init_repo(self, origin_url: str):
        self.workspace.mkdir(parents=True, exist_ok=True)
        self._git("init", "--quiet")
        self.set_user_info()
        self._git("remote", "add", "origin", origin_url)

    def set_user_info(self):
        """Set the local identity so merge commits and tags can be created."""
        self._git("config", "--local", "user.name", self.user_name)
        self._git("config", "--local", "user.email", self.user_email)

    def checkout_branch(self, repo_url: str, branch: str):
        """Check out the tip of a branch from the given repository."""
        if not repo_url or not branch:
            raise InvalidArgument("checkout_branch requires a repository URL and a branch")
        logger.info("Checking out the upstream %s branch...", branch)
        self._init_repo(repo_url)
        self._git("fetch", "--quiet", "origin", BRANCH_REFSPEC)
        self._git("checkout", "--quiet", "-B", branch, f"origin/{branch}")

    def checkout_merge_request(
        self,
        mr_id: int,
        source_repo: str,
        source_repo_url: str,
        target_repo_url: str,
        target_branch: str,
    ):
        """Check out the target branch and merge the merge request head into it."""
        if not isinstance(mr_id, int) or not source_repo or not source_repo_url:
            raise InvalidArgument("checkout_merge_request requires an mr_id and a source repository")
        if not target_repo_url or not target_branch:
            raise InvalidArgument("checkout_merge_request requires a target repository and branch")

        logger.info(
            "Checking out the upstream %s branch and merging merge request !%s from %s...",
            target_branch, mr_id, source_repo,
        )
        self._init_repo(target_repo_url)
        if source_repo != "origin":
            self._git("remote", "add", source_repo, source_repo_url)
        self._git("fetch", "--quiet", "origin", BRANCH_REFSPEC, MERGE_REQUEST_REFSPEC)
        self._git("checkout", "--quiet", "-B", target_branch, f"origin/{target_branch}")
        self._git(
            "merge", "--quiet", "--ff", "--no-edit",
            f"origin/merge-requests/{mr_id}",
        )

    def get_commit_message(self, ref: str) -> str:
        if not ref:
            raise InvalidArgument("ref must not be empty")
        return self._git("log", "--format=%B", "-n", "1", ref)

    def list_tags_at(self, ref: str) -> list[str]:
        if not ref:
            raise InvalidArgument("ref must not be empty")
        output = self._git("tag", "--points-at", ref)
        return [line for line in output.split("\n") if line]
