"""
核心配置模块
"""
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """系统配置"""

    # Web服务（REST + /ws 通道共用同一端口）
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8765)

    # 通道客户端
    channel_url: str = Field(default="")
    channel_connect_timeout_sec: float = Field(default=5.0)
    channel_reconnect_base_delay_sec: float = Field(default=1.0)
    channel_max_reconnect_attempts: int = Field(default=10)
    channel_request_timeout_sec: float = Field(default=10.0)

    # 代码执行（devtools | clipboard）
    injection_mode: str = Field(default="devtools")
    injection_timeout_sec: float = Field(default=30.0)
    devtools_host: str = Field(default="127.0.0.1")
    devtools_port: int = Field(default=9223)
    devtools_target_timeout_sec: float = Field(default=30.0)
    devtools_target_prefixes: List[str] = [
        "https://discord.com",
        "https://canary.discord.com",
        "https://ptb.discord.com",
        "app://discord",
    ]
    devtools_bridge: str = Field(default="window.__questBridge")
    clipboard_process_name: str = Field(default="Discord")
    clipboard_max_window_tries: int = Field(default=120)
    clipboard_window_poll_ms: int = Field(default=500)
    clipboard_key_sequence: List[str] = ["^+i", "^+j", "^v", "{ENTER}"]

    # 宿主能力：仅原生客户端可伪装运行中的游戏
    host_native_app: bool = Field(default=True)

    # 任务来源（provider | channel）
    task_source: str = Field(default="provider")
    ignored_quest_ids: List[str] = ["1412491570820812933"]

    # 进度监控
    progress_poll_interval_sec: float = Field(default=3.0)
    progress_slack_seconds: int = Field(default=5)

    # 日志
    log_level: str = Field(default="INFO")
    log_path: str = Field(default="./logs")
    log_retention_days: int = Field(default=3)
    log_console_enabled: bool = Field(default=True)
    log_max_entries: int = Field(default=500)

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def resolved_channel_url(self) -> str:
        """通道地址：未显式配置时指向本机 /ws（观察者角色）"""
        if self.channel_url:
            return self.channel_url
        return f"ws://{self.api_host}:{self.api_port}/ws?role=observer"


# 全局配置实例
settings = Settings()
