"""
Pagination and filter normalization.

Turns raw ``page_id``/``page_size`` inputs into bounded limit/offset pairs
and picks the single active listing filter. Everything here runs before any
cache or store access, so a rejected request never touches either.
"""

from typing import Optional
from dataclasses import dataclass

from shared.errors import ValidationError

TICKET_PAGE_MIN = 5
TICKET_PAGE_MAX = 10
CATEGORY_PAGE_MIN = 1

# Store binds page values as 32-bit integers
PAGE_VALUE_MAX = 2**31 - 1


@dataclass(frozen=True)
class Page:
    """Normalized page window."""
    limit: int
    offset: int


@dataclass(frozen=True)
class ActiveFilter:
    """The one filter applied to an admin listing."""
    user_assigned: Optional[str] = None
    assigned_to: Optional[str] = None
    category_id: Optional[int] = None


def normalize(
    page_id: Optional[int],
    page_size: Optional[int],
    *,
    min_size: int = TICKET_PAGE_MIN,
    max_size: Optional[int] = TICKET_PAGE_MAX
) -> Page:
    """Validate page inputs and convert them to ``Page(limit, offset)``."""
    if page_id is None:
        raise ValidationError("page_id is required")
    if page_size is None:
        raise ValidationError("page_size is required")
    if page_id < 1:
        raise ValidationError("page_id must be at least 1")
    if page_size < min_size:
        raise ValidationError(f"page_size must be at least {min_size}")
    if max_size is not None and page_size > max_size:
        raise ValidationError(f"page_size must be at most {max_size}")
    if page_id > PAGE_VALUE_MAX:
        raise ValidationError(f"page_id must be at most {PAGE_VALUE_MAX}")
    if page_size > PAGE_VALUE_MAX:
        raise ValidationError(f"page_size must be at most {PAGE_VALUE_MAX}")

    offset = page_size * (page_id - 1)
    if offset > PAGE_VALUE_MAX:
        raise ValidationError("page is out of range")

    return Page(limit=page_size, offset=offset)


def normalize_tickets(page_id: Optional[int], page_size: Optional[int]) -> Page:
    """Ticket and comment listings use pages of 5 to 10 rows."""
    return normalize(page_id, page_size, min_size=TICKET_PAGE_MIN, max_size=TICKET_PAGE_MAX)


def normalize_categories(page_id: Optional[int], page_size: Optional[int]) -> Page:
    """Category listings have no upper page bound."""
    return normalize(page_id, page_size, min_size=CATEGORY_PAGE_MIN, max_size=None)


def active_filter(
    user_assigned: Optional[str] = None,
    assigned_to: Optional[str] = None,
    category_id: Optional[int] = None
) -> ActiveFilter:
    """Keep only the first supplied filter in owner > assignee > category order.

    Empty strings and a category of 0 count as absent.
    """
    if user_assigned:
        return ActiveFilter(user_assigned=user_assigned)
    if assigned_to:
        return ActiveFilter(assigned_to=assigned_to)
    if category_id:
        return ActiveFilter(category_id=category_id)
    return ActiveFilter()
