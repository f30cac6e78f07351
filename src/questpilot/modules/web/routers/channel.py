"""
本地通道 websocket 端点
"""
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket

from ...runtime import QuestRuntime
from ..deps import get_runtime


router = APIRouter(tags=["channel"])


@router.websocket("/ws")
async def channel_endpoint(
    websocket: WebSocket,
    role: Optional[str] = None,
    rt: QuestRuntime = Depends(get_runtime),
):
    await rt.hub.handle(websocket, role=role)
