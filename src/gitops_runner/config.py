"""Configuration loading from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from gitops_runner.core.branches import BranchPatterns
from gitops_runner.errors import InvalidArgument

DEFAULT_LOCK_REGION = "merge-request-locked-branches"


@dataclass
class Config:
    development_branch_regex: str = "develop"
    test_branch_regex: str = "test"
    production_branch_regex: str = "master"
    upstream_repo_url: str | None = None
    forked_repo_url: str | None = None
    manual_branch: str | None = None
    workspace_path: Path | None = None
    locked_branches_file: Path = field(
        default_factory=lambda: Path.home() / ".gitops_runner" / "locked-branches"
    )
    lock_dir: Path | None = None
    lock_region_name: str = DEFAULT_LOCK_REGION
    lock_timeout_secs: float | None = 300.0
    git_user_name: str = "CI/CD Admin"
    git_user_email: str = "cicd@localhost"
    sonar_url: str | None = None
    sonar_token: str | None = None
    sonar_query_interval_secs: float = 10.0
    sonar_timeout_secs: float | None = None
    branch_patterns: BranchPatterns = field(init=False, repr=False)

    def __post_init__(self):
        if self.workspace_path is not None:
            self.workspace_path = Path(self.workspace_path)
        self.locked_branches_file = Path(self.locked_branches_file)
        if self.lock_dir is None:
            self.lock_dir = self.locked_branches_file.parent
        self.lock_dir = Path(self.lock_dir)

        self.branch_patterns = BranchPatterns.compile(
            self.development_branch_regex,
            self.test_branch_regex,
            self.production_branch_regex,
        )

        if self.sonar_query_interval_secs <= 0:
            raise InvalidArgument("sonar_query_interval_secs must be positive")
        if self.lock_timeout_secs is not None and self.lock_timeout_secs <= 0:
            raise InvalidArgument("lock_timeout_secs must be positive")
        if self.sonar_timeout_secs is not None and self.sonar_timeout_secs <= 0:
            raise InvalidArgument("sonar_timeout_secs must be positive")
        if not self.lock_region_name:
            raise InvalidArgument("lock_region_name must not be empty")

    @classmethod
    def from_env(cls, environ=None) -> "Config":
        env = os.environ if environ is None else environ
        kwargs: dict = {}

        for name in ("development", "test", "production"):
            if regex := env.get(f"GR_{name.upper()}_BRANCH_REGEX"):
                kwargs[f"{name}_branch_regex"] = regex

        if url := env.get("GR_UPSTREAM_REPO_URL"):
            kwargs["upstream_repo_url"] = url

        if url := env.get("GR_FORKED_REPO_URL"):
            kwargs["forked_repo_url"] = url

        if branch := env.get("GR_MANUAL_BRANCH"):
            kwargs["manual_branch"] = branch

        if workspace := env.get("GR_WORKSPACE_PATH"):
            kwargs["workspace_path"] = Path(workspace)

        if locked := env.get("GR_LOCKED_BRANCHES_FILE"):
            kwargs["locked_branches_file"] = Path(locked)

        if lock_dir := env.get("GR_LOCK_DIR"):
            kwargs["lock_dir"] = Path(lock_dir)

        if region := env.get("GR_LOCK_REGION_NAME"):
            kwargs["lock_region_name"] = region

        if timeout := env.get("GR_LOCK_TIMEOUT_SECS"):
            kwargs["lock_timeout_secs"] = _parse_float("GR_LOCK_TIMEOUT_SECS", timeout)

        if name := env.get("GR_GIT_USER_NAME"):
            kwargs["git_user_name"] = name

        if email := env.get("GR_GIT_USER_EMAIL"):
            kwargs["git_user_email"] = email

        if sonar_url := env.get("GR_SONAR_URL"):
            kwargs["sonar_url"] = sonar_url.rstrip("/")

        kwargs["sonar_token"] = env.get("GR_SONAR_TOKEN")

        if interval := env.get("GR_SONAR_QUERY_INTERVAL_SECS"):
            kwargs["sonar_query_interval_secs"] = _parse_float(
                "GR_SONAR_QUERY_INTERVAL_SECS", interval
            )

        if timeout := env.get("GR_SONAR_TIMEOUT_SECS"):
            kwargs["sonar_timeout_secs"] = _parse_float("GR_SONAR_TIMEOUT_SECS", timeout)

        return cls(**kwargs)


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as e:
        raise InvalidArgument(f"{name} must be a number, got {value!r}") from e


def get_config() -> Config:
    return Config.from_env()
