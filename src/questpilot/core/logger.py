"""
日志配置模块
"""
import sys
from pathlib import Path
from loguru import logger
from .config import settings

_configured = False


def setup_logger(force: bool = False):
    """配置日志系统（重复调用时只在 force=True 时重建处理器）"""
    global _configured
    if _configured and not force:
        return logger

    # 移除默认处理器
    logger.remove()

    # 创建日志目录
    log_dir = Path(settings.log_path)
    log_dir.mkdir(parents=True, exist_ok=True)

    # 控制台输出（窗口模式下可能没有 stdout）
    console_missing = False
    if settings.log_console_enabled:
        stream = sys.stdout or sys.stderr
        if stream is not None:
            logger.add(
                stream,
                level=settings.log_level,
                format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
            )
        else:
            console_missing = True

    # 文件输出 - 全局日志
    logger.add(
        log_dir / "app_{time:YYYY-MM-DD}.log",
        level=settings.log_level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation="00:00",  # 每天午夜轮转
        retention=f"{settings.log_retention_days} days",
        encoding="utf-8",
    )

    # 错误日志单独记录
    logger.add(
        log_dir / "error_{time:YYYY-MM-DD}.log",
        level="ERROR",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation="00:00",
        retention=f"{settings.log_retention_days * 2} days",
        encoding="utf-8"
    )

    if console_missing:
        logger.warning("未检测到可用控制台输出流，仅写入文件日志")

    _configured = True
    return logger


# 初始化日志系统
logger = setup_logger()
