"""
Activities Module

Client-reported activity log (logins and similar), with the IP and geo
details the client resolved.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import uuid

from .errors import ValidationError
from .logging_config import get_logger
from .storage import StorageInterface, StorageRecord


ACTIVITY_DETAIL_KEYS = ("ip_address", "city", "country", "region_name", "status")


def normalize_details(details: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Keep the known detail keys, defaulting missing ones to empty strings"""
    details = details or {}
    return {key: str(details.get(key) or "") for key in ACTIVITY_DETAIL_KEYS}


@dataclass
class Activity(StorageRecord):
    user_id: str
    activity_type: str
    details: Dict[str, str] = field(default_factory=dict)
    timestamp: Optional[datetime] = None

    _datetime_fields = ("timestamp",)


class ActivityManager:
    """Stores and lists user activities"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "activities"
        self.logger = get_logger("platform.activities")

    def create_activity(self, user_id: str, activity_type: str,
                        details: Optional[Dict[str, Any]] = None) -> Activity:
        if not activity_type:
            raise ValidationError("Activity type is required")

        now = datetime.now(timezone.utc)
        activity = Activity(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            activity_type=activity_type,
            details=normalize_details(details),
            timestamp=now
        )
        self.storage.save(self.table_name, activity.id, activity.to_dict())
        self.logger.debug(f"Activity recorded: {activity_type} for user {user_id}")
        return activity

    def list_user_activities(self, user_id: str) -> List[Activity]:
        """Newest first"""
        return self._sorted(self.storage.find(self.table_name, {"user_id": user_id}))

    def list_activities(self) -> List[Activity]:
        """Newest first"""
        return self._sorted(self.storage.load_all(self.table_name))

    @staticmethod
    def _sorted(records: List[Dict[str, Any]]) -> List[Activity]:
        activities = [Activity.from_dict(data) for data in records]
        activities.sort(key=lambda a: a.created_at, reverse=True)
        return activities
