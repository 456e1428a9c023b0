"""Pull-style iterator over a Synapse table query."""

from typing import Iterator, List, Optional

from bridgex.synapse.async_job import UploadJob
from bridgex.synapse.synapse_helper import SynapseHelper
from bridgex.synapse.table_store import QueryPage

Row = List[Optional[str]]


class SynapseTableIterator(Iterator[Row]):
    """Iterates the rows of a table query, fetching pages lazily.

    The query job is started on construction and each later page is fetched
    only when the current one runs out. The etag of the first page is kept
    and never refreshed, so a long iteration may be reading a result set
    that no longer matches the live table.

    Not thread safe: one consumer per instance.

    Example:
        >>> rows = SynapseTableIterator(helper, "syn1234")
        >>> for row in rows:
        ...     print(row)
        >>> rows.etag
        'f9a3...'
    """

    def __init__(self, helper: SynapseHelper, table_id: str, sql: Optional[str] = None) -> None:
        self.helper = helper
        self.table_id = table_id
        self.sql = sql or f"SELECT * FROM {table_id}"

        self._pending_job: Optional[UploadJob] = helper.start_query(table_id, self.sql)
        self._first_page = True
        self._page: List[Row] = []
        self._index = 0
        self._next_page_token: Optional[str] = None
        self._etag: Optional[str] = None
        self._headers: List[str] = []
        self._lookahead: Optional[Row] = None
        self._exhausted = False

    @property
    def etag(self) -> Optional[str]:
        """Etag of the first page; fetches it if nothing was read yet."""
        if self._first_page and self._pending_job is not None:
            self._resolve_pending()
        return self._etag

    @property
    def headers(self) -> List[str]:
        if self._first_page and self._pending_job is not None:
            self._resolve_pending()
        return self._headers

    def _resolve_pending(self) -> None:
        job = self._pending_job
        assert job is not None
        self._pending_job = None

        page: QueryPage
        if self._first_page:
            page = self.helper.get_query_result(self.table_id, job)
            self._etag = page.etag
            self._headers = page.headers
            self._first_page = False
        else:
            page = self.helper.get_next_page_result(self.table_id, job)

        self._page = page.rows
        self._index = 0
        self._next_page_token = page.next_page_token

    def has_next(self) -> bool:
        """Load the next row into the lookahead buffer if there is one."""
        if self._lookahead is not None:
            return True
        if self._exhausted:
            return False

        while True:
            if self._pending_job is not None:
                self._resolve_pending()
                # An empty page ends the stream even if it carries a cursor
                if not self._page:
                    self._exhausted = True
                    return False

            if self._index < len(self._page):
                self._lookahead = self._page[self._index]
                self._index += 1
                return True

            if self._next_page_token is None:
                self._exhausted = True
                return False

            token = self._next_page_token
            self._next_page_token = None
            self._pending_job = self.helper.start_next_page(self.table_id, token)

    def __next__(self) -> Row:
        if not self.has_next():
            raise StopIteration
        row = self._lookahead
        self._lookahead = None
        assert row is not None
        return row

    def next(self) -> Row:
        return self.__next__()

    def __iter__(self) -> "SynapseTableIterator":
        return self
