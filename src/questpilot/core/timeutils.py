"""
时间工具模块 - 统一使用毫秒时间戳
"""
import asyncio
import time


def now_ms() -> int:
    """当前时间（毫秒时间戳）"""
    return int(time.time() * 1000)


class SystemClock:
    """真实时钟；测试中可替换为可控时钟"""

    def now_ms(self) -> int:
        return now_ms()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


system_clock = SystemClock()
