"""
Pagination Module
=================

Lazy, consumer-driven iteration over paged results.

A :class:`PageStream` is a cursor: its only state is the continuation
token of the next page (plus the unread items of the current one). Each
page is fetched through the full single-call pipeline, with its own retry
budget, and only when the consumer asks for more items.

Properties
----------
- **Finite** - ends on the first page that carries no token.
- **Ordered** - page N+1 is requested only once page N's token is known.
- **Lazy** - nothing is fetched until the first ``next()``; a consumer
  that stops pulling causes no further network activity.
- **Not restartable** - ``iter(stream) is stream``; build a new stream
  from the original Operation to start over.

Example
-------
>>> from awsrpc.services import firehose
>>>
>>> for name in client.stream(firehose.list_delivery_streams(limit=10)):
...     print(name)
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Deque, Iterator, Optional

from awsrpc.core.operation import Operation, Page, Paginator

# Module logger
logger = logging.getLogger(__name__)


class PageStream(Iterator[Any]):
    """
    Iterator over the items of every page of a pageable Operation.

    Parameters
    ----------
    fetch : callable
        ``fetch(operation)`` runs one complete call and returns the
        decoded response, raising on failure.
    operation : Operation
        First-page operation; must carry a :class:`Paginator`.

    Attributes
    ----------
    pages_fetched : int
        Number of pages requested so far.

    Raises
    ------
    ValueError
        If ``operation`` has no paginator.

    Notes
    -----
    Iterate either items (``for item in stream``) or whole pages
    (``stream.pages()``), not both: pulling a page drops unread items.
    When a page fetch fails the error propagates from ``next()`` and the
    token is kept, so pulling again retries the same page.
    """

    def __init__(self, fetch: Callable[[Operation], Any], operation: Operation) -> None:
        if operation.paginator is None:
            raise ValueError(f"Operation on {operation.service} is not pageable")
        self._fetch = fetch
        self._operation = operation
        self._token: Optional[str] = None
        self._done = False
        self._buffer: Deque[Any] = deque()
        self.pages_fetched = 0

    @property
    def paginator(self) -> Paginator:
        return self._operation.paginator  # type: ignore[return-value]

    @property
    def token(self) -> Optional[str]:
        """Continuation token of the next page, None before the first."""
        return self._token

    @property
    def exhausted(self) -> bool:
        return self._done and not self._buffer

    def __iter__(self) -> PageStream:
        return self

    def __next__(self) -> Any:
        while not self._buffer:
            if self._done:
                raise StopIteration
            self._buffer.extend(self.next_page().items)
        return self._buffer.popleft()

    def next_page(self) -> Page:
        """
        Fetch the next page.

        Raises
        ------
        StopIteration
            When the last page has already been fetched.
        """
        if self._done:
            raise StopIteration

        operation = self._operation
        if self._token is not None:
            operation = operation.with_param(self.paginator.input_token, self._token)

        result = self._fetch(operation)
        items = self.paginator.items(result)
        token = self.paginator.next_token(result, items)
        self.pages_fetched += 1

        logger.debug(
            f"Fetched page {self.pages_fetched} of {operation.service} "
            f"({len(items)} items, more={'yes' if token else 'no'})"
        )

        self._buffer.clear()
        self._token = token
        if token is None:
            self._done = True
        return Page(result=result, items=items, next_token=token)

    def pages(self) -> Iterator[Page]:
        """Iterate the remaining pages."""
        while not self._done:
            yield self.next_page()

    def __repr__(self) -> str:
        return (
            f"PageStream(service='{self._operation.service}', "
            f"pages_fetched={self.pages_fetched}, done={self._done})"
        )
