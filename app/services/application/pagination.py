"""
Offset pagination over store reads.
"""
from typing import Awaitable, Callable, List, TypeVar

T = TypeVar("T")


async def read_all(
    fetch_page: Callable[[int, int], Awaitable[List[T]]],
    page_size: int,
) -> List[T]:
    """
    Drain an offset-paginated read.

    Args:
        fetch_page: Coroutine taking (offset, limit) and returning one page
        page_size: Rows requested per page

    Returns:
        All rows, in page order
    """
    rows: List[T] = []
    offset = 0
    while True:
        page = await fetch_page(offset, page_size)
        rows.extend(page)
        if len(page) < page_size:
            return rows
        offset += page_size
