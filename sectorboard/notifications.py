"""Dismissable user-facing notifications (toasts)."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sectorboard.models import Toast

logger = logging.getLogger("sectorboard.notifications")

_MAX_TOASTS = 50


class NotificationCenter:
    """Holds toasts until the view dismisses them.

    Only plain-language titles and descriptions land here; backend error
    details are logged by the caller instead.
    """

    def __init__(self, max_toasts: int = _MAX_TOASTS):
        self._toasts: list[Toast] = []
        self._max_toasts = max_toasts

    def _push(self, title: str, description: str, variant: str) -> Toast:
        toast = Toast(
            id=uuid.uuid4().hex,
            title=title,
            description=description,
            variant=variant,  # type: ignore[arg-type]
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._toasts.append(toast)
        if len(self._toasts) > self._max_toasts:
            del self._toasts[: len(self._toasts) - self._max_toasts]
        return toast

    def success(self, title: str, description: str = "") -> Toast:
        return self._push(title, description, "default")

    def error(self, title: str, description: str = "") -> Toast:
        return self._push(title, description, "destructive")

    def dismiss(self, toast_id: str) -> bool:
        before = len(self._toasts)
        self._toasts = [t for t in self._toasts if t.id != toast_id]
        return len(self._toasts) != before

    def clear(self) -> None:
        self._toasts = []

    @property
    def toasts(self) -> list[Toast]:
        return list(self._toasts)
