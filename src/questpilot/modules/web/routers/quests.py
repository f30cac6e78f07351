"""
任务API
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ....core.errors import QuestAutomationError, describe_error
from ....core.timeutils import now_ms
from ...quests.parser import eligible_tasks
from ...runtime import QuestRuntime
from ..deps import get_runtime


router = APIRouter(prefix="/api/quests", tags=["quests"])


class ExecuteRequest(BaseModel):
    quest_id: Optional[str] = Field(default=None, alias="questId")


@router.get("")
async def list_quests(rt: QuestRuntime = Depends(get_runtime)):
    """获取任务列表（附带是否可执行）"""
    try:
        tasks = await rt.source.list_tasks()
    except QuestAutomationError as e:
        raise HTTPException(status_code=502, detail=describe_error(e))
    eligible = {t.task_id for t in eligible_tasks(tasks, now_ms(), rt.source.ignored_ids)}
    items = []
    for task in tasks:
        item = task.to_dict()
        item["eligible"] = task.task_id in eligible
        items.append(item)
    return {"total": len(items), "quests": items}


@router.post("/execute")
async def execute_quest(body: Optional[ExecuteRequest] = None, rt: QuestRuntime = Depends(get_runtime)):
    """执行指定任务；不指定时依次执行全部可执行任务"""
    quest_id = body.quest_id if body else None
    outcome = await rt.orchestrator.execute(quest_id)
    return outcome.to_dict()


@router.get("/progress")
async def get_progress(rt: QuestRuntime = Depends(get_runtime)):
    snapshots = rt.monitor.snapshots()
    return {"progress": [s.to_dict() for s in snapshots.values()]}


@router.post("/{quest_id}/cancel")
async def cancel_quest(quest_id: str, rt: QuestRuntime = Depends(get_runtime)):
    if not await rt.orchestrator.cancel(quest_id):
        raise HTTPException(status_code=404, detail="该任务不在执行中")
    return {"message": "已取消", "questId": quest_id}
