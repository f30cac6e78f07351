"""
主程序入口
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .core.logger import logger
from .core.config import settings
from .modules.runtime import runtime
from .modules.web import register_routers

# 创建FastAPI应用
app = FastAPI(
    title="questpilot",
    description="任务自动执行与进度监控服务",
    version="1.0.0",
)

# 配置CORS（控制面板运行在本机）
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_routers(app)


@app.on_event("startup")
async def startup():
    """应用启动事件"""
    logger.info("应用启动中...")
    await runtime.start()
    logger.info(f"应用启动完成，监听 {settings.api_host}:{settings.api_port}")


@app.on_event("shutdown")
async def shutdown():
    """应用关闭事件：取消当前运行并恢复真实运行状态"""
    logger.info("应用关闭中...")
    await runtime.stop()
    logger.info("应用关闭完成")


@app.get("/")
async def root():
    """根路径"""
    return {"message": "questpilot API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """健康检查"""
    return {"status": "healthy"}


def run():
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
