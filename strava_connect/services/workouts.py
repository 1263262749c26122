"""Custom workouts stored alongside the user profile."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from strava_connect.clients.storage import RecordStore
from strava_connect.schemas.workouts import Workout, WorkoutCreateRequest
from strava_connect.services.token_store import WORKOUT_SK_PREFIX, user_partition_key

logger = logging.getLogger(__name__)


class WorkoutService:
    """CRUD for ``WORKOUT#<id>`` records under the user's partition."""

    def __init__(self, record_store: RecordStore) -> None:
        self._records = record_store

    def create(self, user_id: str, request: WorkoutCreateRequest) -> Workout:
        now = datetime.now(timezone.utc)
        workout_date = request.date or now
        if workout_date.tzinfo is None:
            workout_date = workout_date.replace(tzinfo=timezone.utc)
        workout_date = workout_date.astimezone(timezone.utc)

        workout = Workout(
            workout_id=uuid.uuid4().hex,
            name=request.name,
            description=request.description,
            duration=request.duration or 0,
            difficulty=request.difficulty or "medium",
            count=request.count or 0,
            workout_date=workout_date.isoformat(),
            created_at=now.isoformat(),
        )
        self._records.put_item(
            {
                "pk": user_partition_key(user_id),
                "sk": f"{WORKOUT_SK_PREFIX}{workout.workout_id}",
                "user_id": str(user_id),
                **workout.model_dump(),
            }
        )
        logger.info("Stored workout %s for user %s", workout.workout_id, user_id)
        return workout

    def list_workouts(self, user_id: str) -> list[Workout]:
        items = self._records.list_items_with_prefix(
            partition_key=user_partition_key(user_id),
            sort_key_prefix=WORKOUT_SK_PREFIX,
        )
        workouts = [Workout.model_validate(item) for item in items]
        return sorted(workouts, key=lambda workout: workout.workout_date, reverse=True)

    def get(self, user_id: str, workout_id: str) -> Optional[Workout]:
        item = self._records.get_item(
            partition_key=user_partition_key(user_id),
            sort_key=f"{WORKOUT_SK_PREFIX}{workout_id}",
        )
        return Workout.model_validate(item) if item else None

    def delete(self, user_id: str, workout_id: str) -> bool:
        """Delete one workout; returns ``False`` when it does not exist."""
        if self.get(user_id, workout_id) is None:
            return False
        self._records.delete_item(
            partition_key=user_partition_key(user_id),
            sort_key=f"{WORKOUT_SK_PREFIX}{workout_id}",
        )
        logger.info("Deleted workout %s for user %s", workout_id, user_id)
        return True


__all__ = ["WorkoutService"]
