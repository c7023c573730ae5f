"""Tests for the diagnostics routes."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from src.errors import AuthError, NotFoundError, UpstreamError


class TestAirtableDiagnostics:
    @patch("src.diagnostics.content_base")
    def test_reports_tables_and_record(self, mock_base, client, auth_headers):
        base = MagicMock()
        base.find.return_value = {"id": "rec1", "fields": {"Title": "How pSEO scales"}}

        def select(table, max_records=None):
            if table == "Context Artifacts":
                raise NotFoundError("Table not found")
            return [{"id": "rec1"}]

        base.select.side_effect = select
        mock_base.return_value = base

        response = client.get("/api/diagnostics/airtable?recordId=rec1", headers=auth_headers)

        assert response.status_code == 200
        diagnostics = response.json()["diagnostics"]
        assert diagnostics["env"]["hasApiKey"] is True
        assert diagnostics["tableAccess"]["success"] is True
        assert "Context Artifacts" not in diagnostics["availableTables"]
        assert diagnostics["recordAccess"] == {"success": True, "recordId": "rec1", "recordTitle": "How pSEO scales"}

    @patch("src.diagnostics.content_base")
    def test_failed_checks_do_not_fail_the_route(self, mock_base, client, auth_headers):
        mock_base.return_value.select.side_effect = UpstreamError("Airtable API error: 403", service="airtable")

        response = client.get("/api/diagnostics/airtable", headers=auth_headers)

        assert response.status_code == 200
        diagnostics = response.json()["diagnostics"]
        assert diagnostics["tableAccess"]["success"] is False
        assert diagnostics["availableTables"] == []
        assert "recordAccess" not in diagnostics


class TestLangfuseDiagnostics:
    @patch("src.diagnostics.fetch_prompt")
    def test_prompt_access_reports_sdk_prompt(self, mock_fetch, client, auth_headers):
        mock_fetch.return_value = SimpleNamespace(
            version=4, prompt=[{"role": "system", "content": "x"}], labels=["production", "latest"],
        )

        response = client.get("/api/diagnostics/langfuse?promptName=draft-blog", headers=auth_headers)

        access = response.json()["diagnostics"]["promptAccess"]
        assert access == {
            "success": True, "promptName": "draft-blog", "version": 4,
            "type": "chat", "labels": ["production", "latest"],
        }
        assert mock_fetch.call_args.kwargs["cache_ttl_seconds"] == 0

    @patch("src.diagnostics.fetch_prompt")
    def test_unknown_prompt_404_means_connected(self, mock_fetch, client, auth_headers):
        mock_fetch.side_effect = NotFoundError("Prompt not found")

        response = client.get("/api/diagnostics/langfuse", headers=auth_headers)

        diagnostics = response.json()["diagnostics"]
        assert diagnostics["connection"]["success"] is True
        assert diagnostics["credentialFormats"]["errors"] == []

    @patch("src.diagnostics.fetch_prompt")
    def test_rejected_keys_and_prompt_lookup(self, mock_fetch, client, auth_headers):
        mock_fetch.side_effect = AuthError("Langfuse rejected the credentials")

        response = client.get("/api/diagnostics/langfuse?promptName=outline-blog", headers=auth_headers)

        diagnostics = response.json()["diagnostics"]
        assert diagnostics["connection"]["success"] is False
        assert diagnostics["promptAccess"]["promptName"] == "outline-blog"
        assert diagnostics["promptAccess"]["success"] is False

    def test_bad_key_formats(self, monkeypatch):
        from src.diagnostics import langfuse_credential_formats

        monkeypatch.setenv("LANGFUSE_PUBLIC_KEY", "public-123")
        monkeypatch.setenv("LANGFUSE_HOST", "langfuse.internal")

        result = langfuse_credential_formats()

        assert result["publicKeyValid"] is False
        assert result["hostValid"] is False
        assert len(result["errors"]) == 2


class TestRunsDiagnostics:
    @patch("src.diagnostics.RunStore.list_runs")
    def test_lists_runs_with_clamped_limit(self, mock_list, client, auth_headers, fake_db):
        mock_list.return_value = [{"_id": "r1", "function_id": "generate-outline"}]

        response = client.get("/api/diagnostics/runs?recordId=rec1&limit=1000", headers=auth_headers)

        assert response.json()["diagnostics"]["count"] == 1
        mock_list.assert_called_once_with(fake_db, record_id="rec1", limit=200)
