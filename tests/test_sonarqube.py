"""Tests for the SonarQube Web API client."""

import tempfile
from pathlib import Path

import pytest
from pytest_httpserver import HTTPServer

from gitops_runner.errors import InvalidArgument, IOFailure, ProtocolError
from gitops_runner.integrations.sonarqube import (
    REPORT_TASK_FILE,
    SonarQubeClient,
    read_report_task_id,
)
from gitops_runner.models import TaskStatus


@pytest.fixture
def client(httpserver: HTTPServer):
    with SonarQubeClient(httpserver.url_for("/"), "squ_token") as c:
        yield c


class TestFetchTask:
    def test_success(self, httpserver: HTTPServer, client):
        httpserver.expect_request("/api/ce/task", query_string={"id": "AX1"}).respond_with_json(
            {"task": {"id": "AX1", "status": "SUCCESS", "analysisId": "AN9"}}
        )
        assert client.fetch_task("AX1") == TaskStatus(status="SUCCESS", analysis_id="AN9")

    def test_pending_without_analysis(self, httpserver: HTTPServer, client):
        httpserver.expect_request("/api/ce/task", query_string={"id": "AX1"}).respond_with_json(
            {"task": {"id": "AX1", "status": "PENDING"}}
        )
        task = client.fetch_task("AX1")
        assert task.status == "PENDING"
        assert task.analysis_id is None
        assert not task.is_terminal

    def test_missing_task(self, httpserver: HTTPServer, client):
        httpserver.expect_request("/api/ce/task").respond_with_json({"errors": []})
        with pytest.raises(ProtocolError):
            client.fetch_task("AX1")

    def test_http_error(self, httpserver: HTTPServer, client):
        httpserver.expect_request("/api/ce/task").respond_with_data("nope", status=404)
        with pytest.raises(IOFailure, match="/api/ce/task"):
            client.fetch_task("AX1")

    def test_invalid_json(self, httpserver: HTTPServer, client):
        httpserver.expect_request("/api/ce/task").respond_with_data("<html>", content_type="text/html")
        with pytest.raises(ProtocolError, match="invalid JSON"):
            client.fetch_task("AX1")

    def test_empty_task_id(self, client):
        with pytest.raises(InvalidArgument):
            client.fetch_task("")


class TestFetchQualityVerdict:
    def test_status(self, httpserver: HTTPServer, client):
        httpserver.expect_request(
            "/api/qualitygates/project_status", query_string={"analysisId": "AN9"}
        ).respond_with_json({"projectStatus": {"status": "ERROR", "conditions": []}})
        assert client.fetch_quality_verdict("AN9") == "ERROR"

    def test_missing_status(self, httpserver: HTTPServer, client):
        httpserver.expect_request("/api/qualitygates/project_status").respond_with_json({})
        assert client.fetch_quality_verdict("AN9") == ""

    def test_unexpected_document(self, httpserver: HTTPServer, client):
        httpserver.expect_request("/api/qualitygates/project_status").respond_with_json(["OK"])
        with pytest.raises(ProtocolError):
            client.fetch_quality_verdict("AN9")


class TestClient:
    def test_requires_url_and_token(self):
        with pytest.raises(InvalidArgument):
            SonarQubeClient("", "token")
        with pytest.raises(InvalidArgument):
            SonarQubeClient("https://sonar.example.com", "")

    def test_strips_trailing_slash(self):
        assert SonarQubeClient("https://sonar.example.com/", "t").url == "https://sonar.example.com"

    def test_connection_refused(self):
        with SonarQubeClient("http://127.0.0.1:1", "t", timeout=(1, 1)) as c:
            with pytest.raises(IOFailure):
                c.fetch_task("AX1")


class TestReadReportTaskId:
    def test_reads_task_id(self):
        with tempfile.TemporaryDirectory() as tmp:
            report = Path(tmp) / REPORT_TASK_FILE
            report.parent.mkdir(parents=True)
            report.write_text(
                "projectKey=app\n"
                "serverUrl=https://sonar.example.com\n"
                "ceTaskId=AX1\n"
                "ceTaskUrl=https://sonar.example.com/api/ce/task?id=AX1\n"
            )
            assert read_report_task_id(tmp) == "AX1"

    def test_missing_report(self):
        with tempfile.TemporaryDirectory() as tmp:
            with pytest.raises(ProtocolError, match="No SonarQube report"):
                read_report_task_id(tmp)

    def test_missing_task_id(self):
        with tempfile.TemporaryDirectory() as tmp:
            report = Path(tmp) / REPORT_TASK_FILE
            report.parent.mkdir(parents=True)
            report.write_text("projectKey=app\n")
            with pytest.raises(ProtocolError, match="ceTaskId"):
                read_report_task_id(tmp)
