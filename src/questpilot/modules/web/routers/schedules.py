"""
定时计划 API
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...runtime import QuestRuntime
from ...tasks.schedule import Schedule
from ..deps import get_runtime


router = APIRouter(prefix="/api/schedules", tags=["schedules"])


class ScheduleCreate(BaseModel):
    name: str
    cron_expression: str = Field(alias="cronExpression")
    quest_id: Optional[str] = Field(default=None, alias="questId")
    enabled: bool = True


class ScheduleUpdate(BaseModel):
    name: Optional[str] = None
    cron_expression: Optional[str] = Field(default=None, alias="cronExpression")
    quest_id: Optional[str] = Field(default=None, alias="questId")
    enabled: Optional[bool] = None


def _serialize(schedule: Schedule) -> dict:
    return {
        "id": schedule.id,
        "name": schedule.name,
        "cronExpression": schedule.cron_expression,
        "questId": schedule.quest_id,
        "enabled": schedule.enabled,
        "lastRun": schedule.last_run,
        "nextRun": schedule.next_run,
        "createdAt": schedule.created_at,
    }


@router.get("")
async def list_schedules(rt: QuestRuntime = Depends(get_runtime)):
    items = [_serialize(s) for s in rt.schedules.list()]
    return {"total": len(items), "schedules": items}


@router.post("")
async def create_schedule(body: ScheduleCreate, rt: QuestRuntime = Depends(get_runtime)):
    try:
        schedule = rt.schedules.create(
            name=body.name,
            cron_expression=body.cron_expression,
            quest_id=body.quest_id,
            enabled=body.enabled,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _serialize(schedule)


@router.get("/{schedule_id}")
async def get_schedule(schedule_id: str, rt: QuestRuntime = Depends(get_runtime)):
    schedule = rt.schedules.get(schedule_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail="计划不存在")
    return _serialize(schedule)


@router.put("/{schedule_id}")
async def update_schedule(schedule_id: str, body: ScheduleUpdate, rt: QuestRuntime = Depends(get_runtime)):
    try:
        schedule = rt.schedules.update(schedule_id, **body.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if schedule is None:
        raise HTTPException(status_code=404, detail="计划不存在")
    return _serialize(schedule)


@router.delete("/{schedule_id}")
async def delete_schedule(schedule_id: str, rt: QuestRuntime = Depends(get_runtime)):
    if not rt.schedules.remove(schedule_id):
        raise HTTPException(status_code=404, detail="计划不存在")
    return {"message": "已删除"}
