"""Tests for the Synapse REST client."""

from pathlib import Path
from typing import Any, Optional
from unittest.mock import Mock, patch

import pytest
import requests

from bridgex.exceptions import (
    ResultNotReadyError,
    SynapseClientError,
    SynapseServiceError,
    SynapseTransportError,
)
from bridgex.objects.column_model import ColumnModel, ColumnType
from bridgex.synapse.synapse_client import SynapseRestClient
from bridgex.synapse.table_store import ACCESS_TYPE_READ, ResourceAccess

ENDPOINT = "https://repo.example.org/repo/v1"


def make_response(status_code: int = 200, body: Optional[Any] = None, text: str = "") -> Mock:
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.content = b"{}" if body is not None else b""
    response.text = text
    if body is None:
        response.json.side_effect = ValueError("no body")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session() -> Mock:
    session = Mock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def client(session: Mock) -> SynapseRestClient:
    return SynapseRestClient(ENDPOINT + "/", "secret", session=session)


@pytest.mark.unit
class TestErrorMapping:
    """Test HTTP status to exception mapping."""

    def test_sets_bearer_token(self, client: SynapseRestClient, session: Mock) -> None:
        assert session.headers["Authorization"] == "Bearer secret"
        assert client.endpoint == ENDPOINT

    def test_accepted_is_not_ready(self, client: SynapseRestClient, session: Mock) -> None:
        session.request.return_value = make_response(202)

        with pytest.raises(ResultNotReadyError):
            client.get_stack_status()

    @pytest.mark.parametrize("status_code", [429, 500, 503])
    def test_throttling_and_server_errors_are_retryable(
        self, client: SynapseRestClient, session: Mock, status_code: int
    ) -> None:
        session.request.return_value = make_response(status_code, text="busy")

        with pytest.raises(SynapseServiceError) as exc_info:
            client.get_stack_status()

        assert exc_info.value.status_code == status_code

    def test_client_error_uses_reason(self, client: SynapseRestClient, session: Mock) -> None:
        session.request.return_value = make_response(400, {"reason": "columnType is required"})

        with pytest.raises(SynapseClientError, match="columnType is required"):
            client.create_table("t", "syn500", ["1"])

    def test_connection_error_is_transport_error(self, client: SynapseRestClient, session: Mock) -> None:
        session.request.side_effect = requests.ConnectionError("reset")

        with pytest.raises(SynapseTransportError):
            client.get_stack_status()

    def test_processing_job_is_not_ready(self, client: SynapseRestClient, session: Mock) -> None:
        session.request.return_value = make_response(200, {"jobState": "PROCESSING"})

        with pytest.raises(ResultNotReadyError):
            client.get_csv_import_result("syn1", "tok")

    def test_failed_job_is_client_error(self, client: SynapseRestClient, session: Mock) -> None:
        session.request.return_value = make_response(200, {"jobState": "FAILED", "errorMessage": "bad row 3"})

        with pytest.raises(SynapseClientError, match="bad row 3"):
            client.get_csv_import_result("syn1", "tok")


@pytest.mark.unit
class TestRequests:
    """Test request bodies and response parsing."""

    def test_create_column_models(self, client: SynapseRestClient, session: Mock) -> None:
        session.request.return_value = make_response(
            200, {"list": [{"id": 7, "name": "a", "columnType": "STRING", "maximumSize": 36}]}
        )

        created = client.create_column_models([ColumnModel(name="a", column_type=ColumnType.STRING, maximum_size=36)])

        assert created == [ColumnModel(id="7", name="a", column_type=ColumnType.STRING, maximum_size=36)]
        method, url = session.request.call_args[0]
        body = session.request.call_args[1]["json"]
        assert (method, url) == ("POST", f"{ENDPOINT}/column/batch")
        assert body["list"] == [{"name": "a", "columnType": "STRING", "maximumSize": 36}]

    def test_create_acl(self, client: SynapseRestClient, session: Mock) -> None:
        session.request.return_value = make_response(201, {"id": "syn1"})

        client.create_acl("syn1", [ResourceAccess(principal_id=5, access_type=ACCESS_TYPE_READ)])

        body = session.request.call_args[1]["json"]
        assert body["resourceAccess"] == [{"principalId": 5, "accessType": ["DOWNLOAD", "READ"]}]

    def test_csv_import_uses_tab_separator(self, client: SynapseRestClient, session: Mock) -> None:
        session.request.return_value = make_response(201, {"token": "tok-9"})

        assert client.start_csv_import("syn1", "fh-1") == "tok-9"

        body = session.request.call_args[1]["json"]
        assert body["csvTableDescriptor"] == {"isFirstLineHeader": True, "separator": "\t"}
        assert body["uploadFileHandleId"] == "fh-1"

    def test_csv_import_result(self, client: SynapseRestClient, session: Mock) -> None:
        session.request.return_value = make_response(200, {"jobState": "COMPLETE", "rowsProcessed": 10})

        assert client.get_csv_import_result("syn1", "tok") == 10

    def test_query_result_parsing(self, client: SynapseRestClient, session: Mock) -> None:
        session.request.return_value = make_response(
            200,
            {
                "queryResult": {
                    "queryResults": {
                        "etag": "etag-1",
                        "headers": [{"name": "a"}, {"name": "b"}],
                        "rows": [{"values": ["1", "x"]}, {"values": ["2", None]}],
                    },
                    "nextPageToken": {"token": "page-2"},
                }
            },
        )

        page = client.get_query_result("syn1", "tok")

        assert page.rows == [["1", "x"], ["2", None]]
        assert page.headers == ["a", "b"]
        assert page.etag == "etag-1"
        assert page.next_page_token == "page-2"

    def test_last_page_has_no_token(self, client: SynapseRestClient, session: Mock) -> None:
        session.request.return_value = make_response(200, {"queryResults": {"rows": []}})

        page = client.get_next_page_result("syn1", "tok")

        assert page.rows == []
        assert page.next_page_token is None

    def test_upload_file(self, client: SynapseRestClient, session: Mock, temp_dir: Path) -> None:
        """A small file goes up as one part and returns the file handle id."""
        path = temp_dir / "t.tsv"
        path.write_text("a\tb\n1\t2\n", encoding="utf-8")
        session.request.side_effect = [
            make_response(201, {"uploadId": "up-1"}),
            make_response(
                201, {"partPresignedUrls": [{"uploadPresignedUrl": "https://s3.example.org/p1", "signedHeaders": {}}]}
            ),
            make_response(200, {"addPartState": "ADD_SUCCESS"}),
            make_response(200, {"state": "COMPLETED", "resultFileHandleId": 123}),
        ]

        with patch("bridgex.synapse.synapse_client.requests.put") as mock_put:
            mock_put.return_value = make_response(200)
            assert client.upload_file(path) == "123"

        mock_put.assert_called_once()
        assert mock_put.call_args[0][0] == "https://s3.example.org/p1"
        add_call = session.request.call_args_list[2]
        assert add_call[0][1].endswith("/file/multipart/up-1/add/1")
        assert "partMD5Hex" in add_call[1]["params"]
