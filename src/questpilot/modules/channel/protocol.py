"""
通道消息协议

每一帧是一个 JSON 对象：{"type": "...", "data": ..., 其他字段}。
"""
from __future__ import annotations

import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict

from ...core.constants import MessageType


class ChannelMessage(BaseModel):
    type: str
    data: Optional[Any] = None

    model_config = ConfigDict(extra="allow")

    def to_frame(self) -> str:
        return json.dumps(self.model_dump(exclude_none=True), ensure_ascii=False)


def make_message(type_: Union[str, MessageType], data: Any = None, **fields: Any) -> Dict[str, Any]:
    value = type_.value if isinstance(type_, MessageType) else str(type_)
    message: Dict[str, Any] = {"type": value}
    if data is not None:
        message["data"] = data
    message.update(fields)
    return message


def encode_message(message: Union[ChannelMessage, Dict[str, Any]]) -> str:
    if isinstance(message, ChannelMessage):
        return message.to_frame()
    return json.dumps(message, ensure_ascii=False)


def decode_frame(frame: Union[str, bytes]) -> ChannelMessage:
    """解析一帧；非 JSON 对象或缺少 type 时抛出 ValueError"""
    if isinstance(frame, bytes):
        frame = frame.decode("utf-8")
    payload = json.loads(frame)
    if not isinstance(payload, dict):
        raise ValueError("frame is not a JSON object")
    if not payload.get("type"):
        raise ValueError("frame has no type")
    return ChannelMessage(**payload)


__all__ = ["ChannelMessage", "make_message", "encode_message", "decode_frame"]
