"""
Small helpers shared across imageprune layers.
"""

import asyncio
import re
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

T = TypeVar('T')
R = TypeVar('R')

# RFC 6570 expressions such as "{/branch}" in GitHub hypermedia URLs
_URI_TEMPLATE_EXPR = re.compile(r'\{[^}]*\}')


def strip_uri_template(url: str) -> str:
    """
    Drop URI template expressions from a GitHub hypermedia URL.

    Expanding a template with no variables removes the expression, so
    "https://api.github.com/repos/o/r/branches{/branch}" becomes
    "https://api.github.com/repos/o/r/branches".
    """
    return _URI_TEMPLATE_EXPR.sub('', url or '')


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp as returned by GitHub or in image configs.

    Returns a timezone-aware datetime (UTC assumed when no offset is
    given), or None for empty or unparseable input.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith('Z') or text.endswith('z'):
        text = text[:-1] + '+00:00'
    # Image configs often carry nanosecond precision
    match = re.match(r'^(.*T\d{2}:\d{2}:\d{2})\.(\d+)(.*)$', text)
    if match:
        text = f"{match.group(1)}.{match.group(2)[:6]}{match.group(3)}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def bounded_gather(
    func: Callable[[T], Awaitable[R]],
    items: Iterable[T],
    limit: int,
) -> List[R]:
    """
    Run func over items with at most `limit` calls in flight.

    Results come back in input order. The first exception propagates,
    like asyncio.gather.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(item: T) -> R:
        async with semaphore:
            return await func(item)

    return list(await asyncio.gather(*(run(item) for item in items)))
