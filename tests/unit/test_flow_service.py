"""Unit tests for FlowService and model response parsing."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cypress_pilot.agents.claude import ClaudeResult
from cypress_pilot.services.flow_service import (
    MOCK_USER_FLOWS,
    FlowIdentificationError,
    FlowService,
    parse_flows,
)
from cypress_pilot.services.git_service import CloneResult, GitError


class TestParseFlows:
    def test_plain_json(self):
        flows, warning = parse_flows('{"identifiedFlows": ["User Login", "Checkout"]}')
        assert flows == ["User Login", "Checkout"]
        assert warning == ""

    def test_json_inside_prose(self):
        flows, _ = parse_flows('Sure!\n```json\n{"identifiedFlows": ["A"]}\n```')
        assert flows == ["A"]

    def test_string_instead_of_list(self):
        flows, warning = parse_flows('{"identifiedFlows": "User Login, Checkout\\nLogout"}')
        assert flows == ["User Login", "Checkout", "Logout"]
        assert "non-array" in warning

    def test_no_json(self):
        flows, warning = parse_flows("I could not find any flows.")
        assert flows == []
        assert "no JSON object" in warning

    def test_invalid_json(self):
        flows, warning = parse_flows("{identifiedFlows: nope}")
        assert flows == []
        assert "could not parse" in warning

    def test_blank_entries_dropped(self):
        flows, _ = parse_flows('{"identifiedFlows": ["A", " ", ""]}')
        assert flows == ["A"]


def make_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "clone"
    (repo / "src" / "pages").mkdir(parents=True)
    (repo / "src" / "pages" / "login.tsx").write_text("", encoding="utf-8")
    return repo


def make_service(tmp_path: Path, claude_output: str = "", success: bool = True):
    repo = make_repo(tmp_path)
    git_service = MagicMock()
    git_service.clone.return_value = CloneResult(local_path=repo, log="cloned\n")
    git_service.cleanup.return_value = True
    claude = MagicMock()
    claude.invoke.return_value = ClaudeResult(
        success=success,
        output=claude_output,
        exit_code=0 if success else 1,
        duration_ms=5,
    )
    return FlowService(git_service=git_service, claude=claude), git_service, claude, repo


class TestIdentifyUserFlows:
    def test_success_keeps_clone(self, tmp_path):
        service, git_service, claude, repo = make_service(
            tmp_path, '{"identifiedFlows": ["User Login"]}'
        )
        analysis = service.identify_user_flows("https://example.com/app.git", app_url="http://app")

        assert analysis.flows == ["User Login"]
        assert analysis.cloned_repo_path == repo
        git_service.cleanup.assert_not_called()
        prompt = claude.invoke.call_args[0][0]
        assert "Directory: /src/pages" in prompt
        assert "http://app" in prompt
        assert analysis.analysis_log.startswith("cloned\n")

    def test_to_dict(self, tmp_path):
        service, _, _, repo = make_service(tmp_path, '{"identifiedFlows": ["A"]}')
        data = service.identify_user_flows("https://example.com/app.git").to_dict()
        assert data["identifiedFlows"] == ["A"]
        assert data["clonedRepoPath"] == str(repo)

    def test_clone_failure(self, tmp_path):
        service, git_service, _, _ = make_service(tmp_path)
        git_service.clone.side_effect = GitError("Failed to clone repository: boom", output="log")

        with pytest.raises(FlowIdentificationError) as exc_info:
            service.identify_user_flows("https://example.com/app.git")

        assert "Failed to identify user flows" in str(exc_info.value)
        git_service.cleanup.assert_not_called()

    def test_model_failure_removes_clone(self, tmp_path):
        service, git_service, _, repo = make_service(tmp_path, success=False)

        with pytest.raises(FlowIdentificationError) as exc_info:
            service.identify_user_flows("https://example.com/app.git")

        git_service.cleanup.assert_called_once_with(repo)
        assert "Cleaned up temporary directory due to error" in exc_info.value.output

    def test_empty_output_removes_clone(self, tmp_path):
        service, git_service, _, repo = make_service(tmp_path, "   ")
        analysis = service.identify_user_flows("https://example.com/app.git")

        assert analysis.flows == []
        assert analysis.cloned_repo_path is None
        git_service.cleanup.assert_called_once_with(repo)

    def test_with_mock_claude_cli(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MOCK_CLAUDE_SCENARIO", "prose")
        repo = make_repo(tmp_path)
        git_service = MagicMock()
        git_service.clone.return_value = CloneResult(local_path=repo, log="")

        analysis = FlowService(git_service=git_service).identify_user_flows("https://x/app.git")

        assert analysis.flows == ["User Login", "View Dashboard", "Update Profile Settings"]


def test_mock_user_flows_are_generic():
    assert "User Login" in MOCK_USER_FLOWS
    assert len(MOCK_USER_FLOWS) == len(set(MOCK_USER_FLOWS))
