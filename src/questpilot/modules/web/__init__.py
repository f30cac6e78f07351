"""
Web API模块
"""
from fastapi import FastAPI
from .routers import channel, quests, schedules, system


def register_routers(app: FastAPI):
    """注册所有路由"""
    app.include_router(quests.router)
    app.include_router(system.router)
    app.include_router(schedules.router)
    app.include_router(channel.router)


__all__ = ["register_routers"]
