"""
Square import job.

After an account is linked, three import tasks are queued per user
(merchant, locations, catalog) and processed in that order. A failing task
is retried on the next run until ``max_retries`` is reached, then marked
failed. Only pending and retrying tasks run; anything else is returned as
is. Results are folded into the user's ``onboarding`` row.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Optional

from voice_onboarding.config import SquareConfig
from voice_onboarding.errors import NotFoundError, OnboardingError
from voice_onboarding.integrations.business_data import (
    primary_location,
    reshape_catalog,
    reshape_location,
    sample_business_data,
)
from voice_onboarding.schemas.business_schema import BusinessData
from voice_onboarding.schemas.connection_schema import ImportTask, TaskStatus, TaskType, TASK_ORDER
from voice_onboarding.services.credentials import CredentialResolver
from voice_onboarding.services.square_client import SquareClient
from voice_onboarding.services.supabase_store import SupabaseStore
from voice_onboarding.utils import utc_now_iso

logger = logging.getLogger(__name__)

ONBOARDING_IMPORTED_STEP = 2
RUNNABLE_STATUSES = (TaskStatus.PENDING, TaskStatus.RETRYING)


def _merchant_fields(merchant: dict[str, Any]) -> dict[str, Any]:
    return {
        "merchant_id": merchant.get("id"),
        "business_name": merchant.get("business_name"),
    }


def _location_fields(snapshot: BusinessData) -> dict[str, Any]:
    location = snapshot.primary_location
    if location is None:
        return {}
    return {
        "primary_location_id": location.id,
        "phone_number": location.phone_number,
        "business_city": location.address.locality if location.address else None,
        "full_address": location.full_address,
        "opening_hours": location.format_business_hours(),
    }


def _catalog_fields(snapshot: BusinessData) -> dict[str, Any]:
    return {
        "catalog_data": {
            "items": [i.model_dump(mode="json") for i in snapshot.items],
            "categories": [c.model_dump(mode="json") for c in snapshot.categories],
        }
    }


class ImportProcessor:
    def __init__(
        self,
        store: SupabaseStore,
        credentials: CredentialResolver,
        square_config: SquareConfig,
    ) -> None:
        self.store = store
        self.credentials = credentials
        self.square_config = square_config

    def queue_import(self, user_id: str, connection_id: str) -> list[ImportTask]:
        tasks = self.store.create_import_tasks(user_id, connection_id)
        logger.info("Queued %d import tasks for user %s", len(tasks), user_id)
        return tasks

    async def _run(self, task: ImportTask) -> tuple[dict[str, Any], dict[str, Any]]:
        """Returns (task data, onboarding fields)."""
        if self.square_config.test_mode:
            return self._run_sample(task.task_type)

        square: SquareClient = await self.credentials.square_for_connection(task.connection_id)
        async with square:
            if task.task_type == TaskType.MERCHANT:
                merchants = await square.list_merchants()
                if not merchants:
                    raise NotFoundError("Square returned no merchant for this connection")
                return {"merchant": merchants[0]}, _merchant_fields(merchants[0])

            if task.task_type == TaskType.LOCATIONS:
                raw = await square.list_locations()
                locations = [reshape_location(r) for r in raw]
                snapshot = BusinessData(
                    primary_location=primary_location(locations), locations=locations
                )
                return {"locations_count": len(locations)}, _location_fields(snapshot)

            items, categories = reshape_catalog(await square.list_catalog())
            snapshot = BusinessData(items=items, categories=categories)
            counts = {"items_count": len(items), "categories_count": len(categories)}
            return counts, _catalog_fields(snapshot)

    @staticmethod
    def _run_sample(task_type: TaskType) -> tuple[dict[str, Any], dict[str, Any]]:
        snapshot = sample_business_data()
        if task_type == TaskType.MERCHANT:
            merchant = {"id": "MERCHANT_1", "business_name": snapshot.locations[0].business_name}
            return {"merchant": merchant}, _merchant_fields(merchant)
        if task_type == TaskType.LOCATIONS:
            return {"locations_count": len(snapshot.locations)}, _location_fields(snapshot)
        counts = {"items_count": len(snapshot.items), "categories_count": len(snapshot.categories)}
        return counts, _catalog_fields(snapshot)

    def _store_onboarding(self, user_id: str, fields: dict[str, Any]) -> None:
        """Merge results into the onboarding row. Failures are logged only."""
        if not fields:
            return
        try:
            existing = self.store.get_onboarding(user_id) or {}
            step = max(existing.get("current_step") or 0, ONBOARDING_IMPORTED_STEP)
            self.store.upsert_onboarding(user_id, {**fields, "current_step": step})
        except Exception:
            logger.exception("Failed to store onboarding data for user %s", user_id)

    async def process_task(self, task_id: str) -> ImportTask:
        task = await asyncio.to_thread(self.store.get_task, task_id)
        if task is None:
            raise NotFoundError(f"Import task {task_id} not found")
        if task.status not in RUNNABLE_STATUSES:
            logger.info("Import task %s is %s, not processing", task.id, task.status.value)
            return task
        return await self._process(task)

    async def _process(self, task: ImportTask) -> ImportTask:
        await asyncio.to_thread(
            self.store.update_task,
            task.id,
            status=TaskStatus.PROCESSING,
            started_at=utc_now_iso(),
            progress_message=f"Importing {task.task_type.value}",
        )
        try:
            data, fields = await self._run(task)
        except OnboardingError as exc:
            return await asyncio.to_thread(self._record_failure, task, exc.message)
        except Exception as exc:
            logger.exception("Import task %s crashed", task.id)
            return await asyncio.to_thread(self._record_failure, task, str(exc))

        completed = task.model_copy(update={
            "status": TaskStatus.COMPLETED,
            "data": data,
            "error_message": None,
            "completed_at": utc_now_iso(),
            "progress_message": f"Imported {task.task_type.value}",
        })
        await asyncio.to_thread(
            self.store.update_task,
            task.id,
            status=completed.status,
            data=data,
            error_message=None,
            completed_at=completed.completed_at,
            progress_message=completed.progress_message,
        )
        await asyncio.to_thread(self._store_onboarding, task.user_id, fields)
        logger.info("Import task %s (%s) completed", task.id, task.task_type.value)
        return completed

    def _record_failure(self, task: ImportTask, error: str) -> ImportTask:
        retry_count = task.retry_count + 1
        if retry_count >= task.max_retries:
            status = TaskStatus.FAILED
            progress = f"Import failed after {retry_count} attempts"
        else:
            status = TaskStatus.RETRYING
            progress = f"Retrying import (attempt {retry_count + 1}/{task.max_retries})"
        logger.warning("Import task %s failed (%s): %s", task.id, status.value, error)
        self.store.update_task(
            task.id,
            status=status,
            retry_count=retry_count,
            error_message=error,
            progress_message=progress,
        )
        return task.model_copy(update={
            "status": status,
            "retry_count": retry_count,
            "error_message": error,
            "progress_message": progress,
        })

    async def process_all_pending(self, user_id: Optional[str] = None) -> dict[str, Any]:
        """Run every pending task, per user, in merchant/locations/catalog order."""
        by_user: dict[str, list[ImportTask]] = defaultdict(list)
        for task in await asyncio.to_thread(self.store.list_pending_tasks, user_id):
            by_user[task.user_id].append(task)

        summary = {"processed": 0, "completed": 0, "failed": 0, "retrying": 0}
        for uid, tasks in by_user.items():
            tasks.sort(key=lambda t: TASK_ORDER.index(t.task_type))
            logger.info("Processing %d import tasks for user %s", len(tasks), uid)
            for task in tasks:
                result = await self._process(task)
                summary["processed"] += 1
                if result.status == TaskStatus.COMPLETED:
                    summary["completed"] += 1
                elif result.status == TaskStatus.FAILED:
                    summary["failed"] += 1
                else:
                    summary["retrying"] += 1
        return summary
