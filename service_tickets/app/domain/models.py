"""
Ticketing data models.
"""

from typing import Optional
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TicketStatus(str, Enum):
    """Ticket lifecycle states."""
    OPEN = "open"
    IN_PROGRESS = "inprogress"
    CLOSED = "closed"


class Ticket(BaseModel):
    """Support ticket as stored."""
    model_config = ConfigDict(from_attributes=True)

    ticket_id: int
    title: str
    description: str
    status: TicketStatus
    user_assigned: str
    assigned_to: Optional[str] = None
    category_id: int
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime] = None


class Comment(BaseModel):
    """Comment attached to a ticket."""
    model_config = ConfigDict(from_attributes=True)

    comment_id: int
    ticket_id: int
    comment_text: str
    user_commented: str
    created_at: datetime


class Category(BaseModel):
    """Ticket category."""
    model_config = ConfigDict(from_attributes=True)

    category_id: int
    name: str


# Request bodies

class TicketCreateRequest(BaseModel):
    """Request model for ticket creation."""
    title: str = Field(..., min_length=1, description="Ticket title")
    description: str = Field(..., min_length=1, description="Problem description")
    status: TicketStatus = Field(..., description="Initial status")
    user_assigned: str = Field(..., min_length=1, description="Ticket owner")
    category_id: int = Field(..., ge=1, description="Category ID")


class TicketUpdateRequest(BaseModel):
    """Request model for assigning a ticket or changing its status."""
    status: TicketStatus = Field(..., description="New status")
    assigned_to: Optional[str] = Field(None, description="Assigned engineer")


class CommentCreateRequest(BaseModel):
    """Request model for adding a comment."""
    comment_text: str = Field(..., min_length=1)
    user_commented: str = Field(..., min_length=1)


class CommentUpdateRequest(BaseModel):
    """Request model for editing a comment."""
    comment_text: str = Field(...)


class CategoryCreateRequest(BaseModel):
    """Request model for category creation."""
    name: str = Field(..., min_length=1)


# Store parameters

@dataclass(frozen=True)
class CreateTicketParams:
    title: str
    description: str
    status: TicketStatus
    user_assigned: str
    category_id: int


@dataclass(frozen=True)
class UpdateTicketParams:
    """Ticket update; ``None`` fields are left untouched by the store."""
    ticket_id: int
    updated_at: datetime
    status: Optional[TicketStatus] = None
    assigned_to: Optional[str] = None


@dataclass(frozen=True)
class ListTicketsParams:
    user_assigned: str
    limit: int
    offset: int


@dataclass(frozen=True)
class ListAllTicketsParams:
    """Admin listing; at most one of the filters is set."""
    limit: int
    offset: int
    user_assigned: Optional[str] = None
    assigned_to: Optional[str] = None
    category_id: Optional[int] = None


@dataclass(frozen=True)
class CreateCommentParams:
    ticket_id: int
    comment_text: str
    user_commented: str


@dataclass(frozen=True)
class UpdateCommentParams:
    comment_id: int
    comment_text: str


@dataclass(frozen=True)
class ListCommentsParams:
    ticket_id: int
    limit: int
    offset: int


@dataclass(frozen=True)
class ListCategoriesParams:
    limit: int
    offset: int
