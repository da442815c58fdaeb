"""
Pydantic models for notifications published on the event bus.
"""

import uuid
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


class Notification(BaseModel):
    """Toast-style notification; the UI decides whether to show it."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    topic: str
    type: NotificationType = NotificationType.INFO
    message: str
    duration: int = 5000  # ms, 0 keeps it until dismissed
    details: Optional[Dict[str, Any]] = None
