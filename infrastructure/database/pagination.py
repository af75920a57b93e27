"""
Alert list paging.

The dashboard asks for alerts 50 at a time; 500 is the most a single query
will return.
"""

from dataclasses import dataclass
from typing import Any, Optional

from app.domain.exceptions import ValidationError

DEFAULT_LIMIT = 50
MAX_LIMIT = 500


@dataclass(frozen=True)
class PaginationParams:
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    @classmethod
    def from_request(cls, limit: Optional[int] = None, offset: Optional[int] = None) -> "PaginationParams":
        """Apply defaults to the ``limit``/``offset`` query values and bound-check them."""
        limit = DEFAULT_LIMIT if limit is None else limit
        offset = 0 if offset is None else offset
        if not 1 <= limit <= MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}", detail={"field": "limit"})
        if offset < 0:
            raise ValidationError("offset must not be negative", detail={"field": "offset"})
        return cls(limit=limit, offset=offset)

    def describe(self, returned: int) -> dict[str, Any]:
        """Page metadata for a response that carried *returned* rows."""
        return {
            "limit": self.limit,
            "offset": self.offset,
            "returned": returned,
            "has_more": returned == self.limit,
        }
