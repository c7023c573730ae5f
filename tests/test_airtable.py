"""Tests for the Airtable record accessor."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from src import airtable
from src.airtable import AirtableBase, escape_formula_value, linked_id
from src.errors import NotFoundError, UpstreamError


def http_error(status):
    response = requests.Response()
    response.status_code = status
    return requests.HTTPError(f"{status} Client Error", response=response)


@pytest.fixture
def api():
    return MagicMock()


@pytest.fixture
def table(api):
    return api.table.return_value


def make_base(api):
    return AirtableBase("patKey", "appBase", api=api)


class TestAirtableBase:
    def test_find_uses_base_and_table(self, api, table):
        table.get.return_value = {"id": "rec1", "fields": {"Title": "T"}}

        record = make_base(api).find("Content Pipeline", "rec1")

        assert record["fields"]["Title"] == "T"
        api.table.assert_called_once_with("appBase", "Content Pipeline")
        table.get.assert_called_once_with("rec1")

    @patch("src.airtable.Api")
    def test_api_created_once_with_token(self, mock_api):
        base = AirtableBase("patKey", "appBase")
        base.find("Content Pipeline", "rec1")
        base.find("Personas", "recP1")

        mock_api.assert_called_once_with("patKey", timeout=airtable.REQUEST_TIMEOUT)

    def test_not_found_lists_causes(self, api, table):
        table.get.side_effect = http_error(404)
        with pytest.raises(NotFoundError) as exc:
            make_base(api).find("Content Pipeline", "recMissing")
        message = exc.value.message
        assert 'record "recMissing"' in message
        assert "case-sensitive" in message
        assert "appBase" in message

    @pytest.mark.parametrize("status", [401, 403])
    def test_token_rejected(self, status, api, table):
        table.get.side_effect = http_error(status)
        with pytest.raises(UpstreamError) as exc:
            make_base(api).find("Content Pipeline", "rec1")
        assert exc.value.upstream_status == status
        assert "scopes" in exc.value.message

    def test_server_error_keeps_status(self, api, table):
        table.update.side_effect = http_error(503)
        with pytest.raises(UpstreamError) as exc:
            make_base(api).update("Content Pipeline", "rec1", {"Status": "Generating"})
        assert exc.value.upstream_status == 503

    def test_connection_error(self, api, table):
        table.all.side_effect = requests.ConnectionError("reset by peer")
        with pytest.raises(UpstreamError, match="request failed"):
            make_base(api).select("Content Pipeline")

    def test_unconfigured(self, api):
        base = AirtableBase("", "appBase", api=api)
        with pytest.raises(UpstreamError, match="not configured"):
            base.find("Content Pipeline", "rec1")
        api.table.assert_not_called()

    def test_update_many_uses_batch_update(self, api, table):
        updates = [{"id": f"rec{i}", "fields": {"Status": "Generating"}} for i in range(23)]
        table.batch_update.return_value = updates

        updated = make_base(api).update_many("Content Pipeline", updates)

        table.batch_update.assert_called_once_with(updates)
        assert len(updated) == 23

    def test_empty_batches_skip_the_api(self, api):
        base = make_base(api)
        assert base.update_many("Content Pipeline", []) == []
        assert base.create_many("Keyword Bank", []) == []
        api.table.assert_not_called()

    def test_select_passes_options(self, api, table):
        table.all.return_value = [{"id": "rec1"}, {"id": "rec2"}]

        records = make_base(api).select("Content Pipeline", formula='{Status} = "Ready"', max_records=5)

        assert [r["id"] for r in records] == ["rec1", "rec2"]
        table.all.assert_called_once_with(formula='{Status} = "Ready"', max_records=5)

class TestContentHelpers:
    def test_escape_formula_value(self):
        assert escape_formula_value('say "hi"') == 'say \\"hi\\"'

    def test_linked_id(self):
        assert linked_id({"Industry": ["recA", "recB"]}, "Industry") == "recA"
        assert linked_id({"Industry": []}, "Industry") is None
        assert linked_id({}, "Industry") is None

    @patch("src.airtable.content_base")
    def test_batch_update_status(self, mock_base):
        mock_base.return_value.update_many.return_value = [{"id": "rec1"}, {"id": "rec2"}]

        assert airtable.batch_update_status(["rec1", "rec2"], "Generating") == 2
        table, updates = mock_base.return_value.update_many.call_args[0]
        assert table == "Content Pipeline"
        assert updates[0] == {"id": "rec1", "fields": {"Status": "Generating"}}

    @patch("src.airtable.content_base")
    def test_active_artifacts_keyed_by_type(self, mock_base):
        mock_base.return_value.select.return_value = [
            {"id": "a1", "fields": {"Type": "voice-guidelines", "Content": "Be plain"}},
            {"id": "a2", "fields": {"Content": "no type"}},
        ]

        assert airtable.get_active_artifacts() == {"voice-guidelines": "Be plain"}
        assert mock_base.return_value.select.call_args.kwargs["formula"] == "{Active} = 1"

    @patch("src.airtable.content_base")
    def test_get_industry(self, mock_base):
        mock_base.return_value.find.return_value = {
            "id": "recIND1", "fields": {"Name": "SaaS", "Pain Points": "Churn"},
        }
        industry = airtable.get_industry("recIND1")
        assert industry.name == "SaaS"
        assert industry.pain_points == "Churn"
        assert industry.terminology == ""

    def test_run_id_field_name(self):
        assert airtable.FIELD_RUN_ID == "Inngest Run ID"
