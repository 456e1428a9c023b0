"""Google Cloud Storage archive for scratch files that failed to upload.

When a table's import fails, its TSV scratch file stays on local disk. If a
redrive bucket is configured the file is also copied to
``gs://<bucket>/redrive/<table_key>/<file name>`` so it survives the host.
"""

from pathlib import Path

from google.api_core import exceptions as google_api_exceptions
from google.cloud import storage  # type: ignore[attr-defined]

from bridgex.exceptions import GcsOperationError
from bridgex.logging_config import get_logger
from bridgex.utils.retry import RetryPolicy, retry_with_policy

logger = get_logger(__name__)

# GCS transient failures that should be retried
TRANSIENT_EXCEPTIONS = (
    google_api_exceptions.ServiceUnavailable,  # 503
    google_api_exceptions.DeadlineExceeded,  # 504
    google_api_exceptions.InternalServerError,  # 500
    google_api_exceptions.TooManyRequests,  # 429 rate limiting
)

GCS_RETRY_POLICY = RetryPolicy(attempts=4, delay_seconds=1.0, retryable=TRANSIENT_EXCEPTIONS)

REDRIVE_PREFIX = "redrive"


class GcsManager:
    """Uploads failed scratch files to a GCS bucket.

    Attributes:
        storage_client: GCS storage client
        bucket_name: Bucket receiving redrive files
    """

    def __init__(self, gcs_project: str, bucket_name: str) -> None:
        self.storage_client = storage.Client(project=gcs_project)
        self.bucket_name = bucket_name

    def redrive_blob_name(self, local_path: Path, table_key: str) -> str:
        return f"{REDRIVE_PREFIX}/{table_key}/{local_path.name}"

    @retry_with_policy(GCS_RETRY_POLICY)
    def upload_blob(self, local_path: Path, blob_name: str) -> str:
        """Upload a local file, returning its gs:// URI.

        Raises:
            GcsOperationError: on authentication, permission or missing bucket errors
        """
        try:
            bucket = self.storage_client.bucket(self.bucket_name)
            blob = bucket.blob(blob_name)
            blob.upload_from_filename(str(local_path), content_type="text/tab-separated-values")
        except (
            google_api_exceptions.Unauthenticated,
            google_api_exceptions.PermissionDenied,
            google_api_exceptions.NotFound,
        ) as e:
            raise GcsOperationError(f"Unable to upload {local_path} to gs://{self.bucket_name}/{blob_name}: {e}") from e

        uri = f"gs://{self.bucket_name}/{blob_name}"
        logger.info(f"Uploaded {local_path} to {uri}")
        return uri

    def archive_failed_file(self, local_path: Path, table_key: str) -> None:
        """Copy a failed scratch file to the redrive prefix.

        Matches the worker's failed-file callback signature.
        """
        uri = self.upload_blob(local_path, self.redrive_blob_name(local_path, table_key))
        logger.warning(f"[re-upload-tsv] archived {local_path.name} for {table_key} at {uri}")
