"""Pydantic models for the rows the dashboard reads and writes."""
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Any, Literal, Optional

ActivityStatus = Literal["pending", "in_progress", "completed", "archived"]
ActivityPriority = Literal["low", "medium", "high"]
UserRole = Literal["manager", "collaborator"]
PendingStatus = Literal["pending", "approved", "rejected"]
HistoryAction = Literal["created", "status_changed", "archived", "unarchived", "deleted", "updated"]

ACTIVITY_STATUSES: tuple[str, ...] = ("pending", "in_progress", "completed", "archived")
ACTIVITY_PRIORITIES: tuple[str, ...] = ("low", "medium", "high")


# ── Auth / identity ────────────────────────────────────────────────

class AuthUser(BaseModel):
    id: str
    email: str = ""


class AuthSession(BaseModel):
    access_token: str
    refresh_token: str = ""
    expires_at: Optional[float] = None  # unix seconds
    user: AuthUser


class Profile(BaseModel):
    id: str
    email: str = ""
    full_name: str = ""
    avatar_url: Optional[str] = None
    role: UserRole = "collaborator"
    sector_id: Optional[str] = None
    subsector_id: Optional[str] = None
    is_approved: bool = False
    approved_by: Optional[str] = None
    approved_at: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


class PersonSummary(BaseModel):
    full_name: str = ""
    avatar_url: Optional[str] = None


# ── Activities ─────────────────────────────────────────────────────

class Subtask(BaseModel):
    id: str
    activity_id: str
    title: str
    description: Optional[str] = None
    is_completed: bool = False
    order_index: int = 0
    checklist_group: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


class Activity(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    status: ActivityStatus = "pending"
    priority: ActivityPriority = "medium"
    due_date: Optional[str] = None
    estimated_time: Optional[int] = None
    user_id: Optional[str] = None      # assignee
    created_by: str
    sector_id: str
    subsector_id: Optional[str] = None
    list_id: Optional[str] = None
    is_private: bool = False
    completed_at: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    creator: Optional[PersonSummary] = None
    subsector_name: Optional[str] = None
    subtasks: list[Subtask] = Field(default_factory=list)
    assignee_ids: list[str] = Field(default_factory=list)


class ActivityCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: Optional[ActivityPriority] = None
    status: Optional[ActivityStatus] = None
    due_date: Optional[str] = None
    estimated_time: Optional[int] = None
    user_id: Optional[str] = None
    subsector_id: Optional[str] = None
    list_id: Optional[str] = None
    is_private: bool = False


class ActivityPatch(BaseModel):
    """Partial update; only fields explicitly set are written."""
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[ActivityStatus] = None
    priority: Optional[ActivityPriority] = None
    due_date: Optional[str] = None
    estimated_time: Optional[int] = None
    user_id: Optional[str] = None
    subsector_id: Optional[str] = None
    list_id: Optional[str] = None
    is_private: Optional[bool] = None
    completed_at: Optional[str] = None


class ActivityHistoryEntry(BaseModel):
    id: str
    activity_id: str
    action: HistoryAction
    old_status: Optional[ActivityStatus] = None
    new_status: Optional[ActivityStatus] = None
    performed_by: str
    activity_title: str = ""
    activity_description: Optional[str] = None
    subsector_id: Optional[str] = None
    sector_id: str
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: str = ""
    performer_name: Optional[str] = None


# ── Users awaiting approval / invitations ──────────────────────────

class PendingUser(BaseModel):
    id: str
    email: str
    full_name: str = ""
    sector_id: Optional[str] = None
    subsector_id: Optional[str] = None
    status: PendingStatus = "pending"
    created_at: str = ""
    sector_name: Optional[str] = None
    subsector_name: Optional[str] = None


class Invitation(BaseModel):
    id: str
    email: str
    token: str
    role: UserRole = "collaborator"
    sector_id: str
    subsector_id: Optional[str] = None
    invited_by: str
    expires_at: str = ""
    used_at: Optional[str] = None
    created_at: str = ""


# ── Personal lists / inbox ─────────────────────────────────────────

class PersonalList(BaseModel):
    id: str
    user_id: str
    sector_id: str
    name: str
    created_at: str = ""
    updated_at: str = ""


class Notification(BaseModel):
    id: str
    user_id: str
    title: str = ""
    message: str = ""
    type: str = "info"
    read: bool = False
    related_activity_id: Optional[str] = None
    created_at: str = ""


# ── User-facing toasts ─────────────────────────────────────────────

class Toast(BaseModel):
    id: str
    title: str
    description: str = ""
    variant: Literal["default", "destructive"] = "default"
    created_at: str = ""
