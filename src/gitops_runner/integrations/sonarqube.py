"""SonarQube Web API client for compute-engine tasks and quality gates."""

import logging
from pathlib import Path
from typing import Any, Self

import requests

from gitops_runner.errors import InvalidArgument, IOFailure, ProtocolError
from gitops_runner.models import TaskStatus

logger = logging.getLogger(__name__)

# (connect, read) timeouts in seconds.
REQUEST_TIMEOUT = (5, 60)
REPORT_TASK_FILE = Path("target") / "sonar" / "report-task.txt"


class SonarQubeClient:
    def __init__(self, url: str, token: str, timeout=REQUEST_TIMEOUT) -> None:
        if not url or not token:
            raise InvalidArgument("SonarQubeClient requires a server URL and an access token")
        self.url = url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = requests.Session()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        self.session.close()

    def _get(self, path: str, params: dict) -> dict:
        try:
            response = self.session.get(
                url=f"{self.url}{path}",
                params=params,
                auth=(self.token, ""),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise IOFailure(f"SonarQube request to {path} failed: {e}") from e
        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"SonarQube returned invalid JSON for {path}") from e
        if not isinstance(data, dict):
            raise ProtocolError(f"SonarQube returned an unexpected document for {path}")
        return data

    def fetch_task(self, task_id: str) -> TaskStatus:
        if not task_id:
            raise InvalidArgument("task_id must not be empty")
        logger.debug("Fetching SonarQube task %s", task_id)
        task = self._get("/api/ce/task", {"id": task_id}).get("task")
        if not task or not task.get("status"):
            raise ProtocolError(f"The SonarQube task data retrieved for {task_id} is invalid")
        return TaskStatus(status=task["status"], analysis_id=task.get("analysisId") or None)

    def fetch_quality_verdict(self, analysis_id: str) -> str:
        """Return the raw quality gate status (OK, WARN, ERROR, ...) or an empty string."""
        if not analysis_id:
            raise InvalidArgument("analysis_id must not be empty")
        logger.debug("Fetching the quality gate status for analysis %s", analysis_id)
        data = self._get("/api/qualitygates/project_status", {"analysisId": analysis_id})
        project_status = data.get("projectStatus") or {}
        return project_status.get("status") or ""


def read_report_task_id(workspace: str | Path) -> str:
    """Read the compute-engine task id the scanner wrote to report-task.txt."""
    if not workspace:
        raise InvalidArgument("workspace must not be empty")
    report = Path(workspace) / REPORT_TASK_FILE
    try:
        lines = report.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError as e:
        raise ProtocolError(f"No SonarQube report found at {report}") from e
    except OSError as e:
        raise IOFailure(f"Could not read {report}: {e}") from e

    for line in lines:
        key, sep, value = line.partition("=")
        if sep and key.strip() == "ceTaskId" and value.strip():
            return value.strip()
    raise ProtocolError(f"{report} does not contain a ceTaskId entry")
