"""
系统状态 API
"""
from fastapi import APIRouter, Depends, Query

from ...runtime import QuestRuntime
from ..deps import get_runtime


router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/status")
async def get_status(rt: QuestRuntime = Depends(get_runtime)):
    return rt.status()


@router.get("/logs")
async def get_logs(
    limit: int = Query(100, ge=0, le=500, description="返回数量限制"),
    rt: QuestRuntime = Depends(get_runtime),
):
    logs = rt.events.recent_logs(limit)
    return {"total": len(logs), "logs": [entry.to_dict() for entry in logs]}


@router.delete("/logs")
async def clear_logs(rt: QuestRuntime = Depends(get_runtime)):
    rt.events.clear_logs()
    return {"message": "日志已清空"}
