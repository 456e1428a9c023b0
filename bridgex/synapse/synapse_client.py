"""Synapse repository REST client.

Implements ``TableStore`` with one HTTP request per call (multipart file
uploads aside). HTTP outcomes are mapped onto the exporter's exceptions:

- 202, or a job body still PROCESSING: ``ResultNotReadyError``
- 429 and 5xx: ``SynapseServiceError`` (retryable)
- connection errors and timeouts: ``SynapseTransportError`` (retryable)
- any other 4xx, or a FAILED job: ``SynapseClientError``
"""

import hashlib
import math
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from bridgex.exceptions import (
    ResultNotReadyError,
    SynapseClientError,
    SynapseServiceError,
    SynapseTransportError,
)
from bridgex.logging_config import get_logger
from bridgex.objects.column_model import ColumnModel
from bridgex.synapse.schema import ColumnChange
from bridgex.synapse.table_store import QueryPage, ResourceAccess, TableStore

logger = get_logger(__name__)

MODEL_PACKAGE = "org.sagebionetworks.repo.model"
DEFAULT_FILE_ENDPOINT = "https://repo-prod.prod.sagebase.org/file/v1"
MIN_PART_SIZE_BYTES = 5 * 1024 * 1024
MAX_PARTS = 10000
QUERY_RESULTS_PART_MASK = 0x1


def _md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def _file_md5_hex(path: Path) -> str:
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _parse_query_result(query_result: Dict[str, Any]) -> QueryPage:
    row_set = query_result.get("queryResults") or {}
    next_page = query_result.get("nextPageToken") or {}
    return QueryPage(
        rows=[row.get("values", []) for row in row_set.get("rows") or []],
        headers=[h.get("name", "") for h in row_set.get("headers") or []],
        etag=row_set.get("etag"),
        next_page_token=next_page.get("token"),
    )


class SynapseRestClient(TableStore):
    """Talks to the Synapse repository and file services.

    Attributes:
        endpoint: Repository API base URL, e.g. https://repo-prod.prod.sagebase.org/repo/v1
        file_endpoint: File service base URL used for multipart uploads
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        endpoint: str,
        auth_token: str,
        file_endpoint: Optional[str] = None,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.file_endpoint = (file_endpoint or DEFAULT_FILE_ENDPOINT).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {auth_token}",
                "Accept": "application/json",
            }
        )

    def _request(
        self,
        method: str,
        url: str,
        json_body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        try:
            response = self.session.request(
                method, url, json=json_body, params=params, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise SynapseTransportError(f"{method} {url} failed: {e}") from e

        if response.status_code == 202:
            raise ResultNotReadyError(f"{method} {url} is not ready", status_code=202)

        if response.status_code == 429 or response.status_code >= 500:
            raise SynapseServiceError(
                f"{method} {url} returned {response.status_code}: {self._reason(response)}",
                status_code=response.status_code,
            )

        if response.status_code >= 400:
            raise SynapseClientError(
                f"{method} {url} returned {response.status_code}: {self._reason(response)}",
                status_code=response.status_code,
            )

        return response

    @staticmethod
    def _reason(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict) and body.get("reason"):
            return str(body["reason"])
        return response.text

    def _repo(self, method: str, path: str, json_body: Optional[Any] = None) -> Dict[str, Any]:
        response = self._request(method, f"{self.endpoint}{path}", json_body=json_body)
        if not response.content:
            return {}
        return response.json()

    def _file(
        self,
        method: str,
        path: str,
        json_body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        response = self._request(method, f"{self.file_endpoint}{path}", json_body=json_body, params=params)
        if not response.content:
            return {}
        return response.json()

    def _start_job(self, path: str, body: Dict[str, Any]) -> str:
        return str(self._repo("POST", path, body)["token"])

    def _get_job(self, path: str) -> Dict[str, Any]:
        body = self._repo("GET", path)
        job_state = body.get("jobState")
        if job_state == "PROCESSING":
            raise ResultNotReadyError(f"GET {path} is still processing")
        if job_state == "FAILED":
            raise SynapseClientError(
                f"Async job failed: {body.get('errorMessage') or body.get('errorDetails')}"
            )
        return body

    def create_column_models(self, columns: List[ColumnModel]) -> List[ColumnModel]:
        body = {
            "concreteType": f"{MODEL_PACKAGE}.ListWrapper",
            "list": [c.to_synapse_json() for c in columns],
        }
        response = self._repo("POST", "/column/batch", body)
        return [ColumnModel.from_synapse_json(c) for c in response.get("list", [])]

    def create_table(self, name: str, parent_id: str, column_ids: List[str]) -> str:
        body = {
            "concreteType": f"{MODEL_PACKAGE}.table.TableEntity",
            "name": name,
            "parentId": parent_id,
            "columnIds": column_ids,
        }
        return str(self._repo("POST", "/entity", body)["id"])

    def create_acl(self, entity_id: str, resource_access: List[ResourceAccess]) -> None:
        body = {
            "id": entity_id,
            "resourceAccess": [
                {"principalId": ra.principal_id, "accessType": sorted(ra.access_type)}
                for ra in resource_access
            ],
        }
        self._repo("POST", f"/entity/{entity_id}/acl", body)

    def get_column_models_for_table(self, table_id: str) -> List[ColumnModel]:
        response = self._repo("GET", f"/entity/{table_id}/column")
        return [ColumnModel.from_synapse_json(c) for c in response.get("results", [])]

    def start_table_transaction(
        self, table_id: str, changes: List[ColumnChange], ordered_column_ids: List[str]
    ) -> str:
        body = {
            "concreteType": f"{MODEL_PACKAGE}.table.TableUpdateTransactionRequest",
            "entityId": table_id,
            "changes": [
                {
                    "concreteType": f"{MODEL_PACKAGE}.table.TableSchemaChangeRequest",
                    "entityId": table_id,
                    "changes": [
                        {"oldColumnId": c.old_column_id, "newColumnId": c.new_column_id}
                        for c in changes
                    ],
                    "orderedColumnIds": ordered_column_ids,
                }
            ],
        }
        return self._start_job(f"/entity/{table_id}/table/transaction/async/start", body)

    def get_table_transaction_result(self, table_id: str, token: str) -> dict:
        return self._get_job(f"/entity/{table_id}/table/transaction/async/get/{token}")

    def upload_file(self, path: Path, content_type: str = "text/tab-separated-values") -> str:
        """Upload through the multipart API, returning the file handle id."""
        file_size = path.stat().st_size
        part_size = max(MIN_PART_SIZE_BYTES, math.ceil(file_size / MAX_PARTS))
        part_count = max(1, math.ceil(file_size / part_size))

        status = self._file(
            "POST",
            "/file/multipart",
            {
                "concreteType": "org.sagebionetworks.repo.model.file.MultipartUploadRequest",
                "fileName": path.name,
                "contentType": content_type,
                "contentMD5Hex": _file_md5_hex(path),
                "fileSizeBytes": file_size,
                "partSizeBytes": part_size,
            },
        )
        upload_id = status["uploadId"]

        with open(path, "rb") as f:
            for part_number in range(1, part_count + 1):
                data = f.read(part_size)
                urls = self._file(
                    "POST",
                    f"/file/multipart/{upload_id}/presigned/url/batch",
                    {
                        "concreteType": "org.sagebionetworks.repo.model.file.BatchPresignedUploadUrlRequest",
                        "uploadId": upload_id,
                        "contentType": content_type,
                        "partNumbers": [part_number],
                    },
                )
                presigned = urls["partPresignedUrls"][0]
                try:
                    put_response = requests.put(
                        presigned["uploadPresignedUrl"],
                        data=data,
                        headers=presigned.get("signedHeaders") or {},
                        timeout=self.timeout,
                    )
                except requests.RequestException as e:
                    raise SynapseTransportError(f"Uploading part {part_number} of {path} failed: {e}") from e
                if put_response.status_code >= 400:
                    raise SynapseServiceError(
                        f"Uploading part {part_number} of {path} returned {put_response.status_code}",
                        status_code=put_response.status_code,
                    )
                self._file(
                    "PUT",
                    f"/file/multipart/{upload_id}/add/{part_number}",
                    params={"partMD5Hex": _md5_hex(data)},
                )

        completed = self._file("PUT", f"/file/multipart/{upload_id}/complete")
        if completed.get("state") != "COMPLETED":
            raise SynapseClientError(f"Multipart upload {upload_id} for {path} did not complete")
        return str(completed["resultFileHandleId"])

    def start_csv_import(self, table_id: str, file_handle_id: str) -> str:
        body = {
            "concreteType": f"{MODEL_PACKAGE}.table.UploadToTableRequest",
            "tableId": table_id,
            "uploadFileHandleId": file_handle_id,
            "csvTableDescriptor": {"isFirstLineHeader": True, "separator": "\t"},
        }
        return self._start_job(f"/entity/{table_id}/table/upload/csv/async/start", body)

    def get_csv_import_result(self, table_id: str, token: str) -> int:
        body = self._get_job(f"/entity/{table_id}/table/upload/csv/async/get/{token}")
        return int(body["rowsProcessed"])

    def start_query(self, table_id: str, sql: str) -> str:
        body = {
            "concreteType": f"{MODEL_PACKAGE}.table.QueryBundleRequest",
            "entityId": table_id,
            "query": {"sql": sql},
            "partMask": QUERY_RESULTS_PART_MASK,
        }
        return self._start_job(f"/entity/{table_id}/table/query/async/start", body)

    def get_query_result(self, table_id: str, token: str) -> QueryPage:
        body = self._get_job(f"/entity/{table_id}/table/query/async/get/{token}")
        return _parse_query_result(body.get("queryResult") or {})

    def start_next_page(self, table_id: str, next_page_token: str) -> str:
        return self._start_job(
            f"/entity/{table_id}/table/query/nextPage/async/start",
            {"token": next_page_token},
        )

    def get_next_page_result(self, table_id: str, token: str) -> QueryPage:
        body = self._get_job(f"/entity/{table_id}/table/query/nextPage/async/get/{token}")
        return _parse_query_result(body)

    def get_stack_status(self) -> str:
        return str(self._repo("GET", "/status").get("status", ""))
