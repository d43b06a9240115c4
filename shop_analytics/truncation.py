"""
Output size ceiling for serialized reports.
"""
from dataclasses import dataclass
from typing import Optional

from shop_analytics.config import CHARACTER_LIMIT
from shop_analytics.observability import get_logger

logger = get_logger(__name__)

TRUNCATION_MARKER = "\n\n[... RESPONSE TRUNCATED ...]\n\n"


@dataclass
class TruncationResult:
    """Content after the size check."""
    truncated: bool
    data: str
    message: Optional[str] = None


def apply_truncation(content: str, limit: int = CHARACTER_LIMIT) -> TruncationResult:
    """
    Cap content at `limit` characters.

    Oversized content keeps its first and last limit // 2 characters
    with a marker in between.
    """
    if len(content) <= limit:
        return TruncationResult(truncated=False, data=content)

    keep = limit // 2
    tail = content[-keep:] if keep else ""
    data = content[:keep] + TRUNCATION_MARKER + tail

    logger.warning(
        f"Response truncated from {len(content)} to {limit} characters",
        extra={"original_length": len(content), "limit": limit}
    )
    return TruncationResult(
        truncated=True,
        data=data,
        message=(
            f"Response truncated from {len(content)} to {limit} characters. "
            "Use more specific filters (reduce date range or limit) to reduce data volume."
        ),
    )
