"""
常量和枚举定义
"""
from enum import Enum


class TaskKind(str, Enum):
    """任务类型（识别顺序即定义顺序）"""
    WATCH_VIDEO = "WATCH_VIDEO"
    PLAY_ON_DESKTOP = "PLAY_ON_DESKTOP"
    STREAM_ON_DESKTOP = "STREAM_ON_DESKTOP"
    PLAY_ACTIVITY = "PLAY_ACTIVITY"
    WATCH_VIDEO_ON_MOBILE = "WATCH_VIDEO_ON_MOBILE"


# 一次请求即可完成的类型
INSTANT_KINDS = frozenset({TaskKind.WATCH_VIDEO, TaskKind.WATCH_VIDEO_ON_MOBILE})

# 需要伪装运行并等待时长的类型
TIMED_KINDS = frozenset({
    TaskKind.PLAY_ON_DESKTOP,
    TaskKind.STREAM_ON_DESKTOP,
    TaskKind.PLAY_ACTIVITY,
})


class LogLevel(str, Enum):
    """界面日志级别"""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class FailureKind(str, Enum):
    """执行失败分类"""
    NOT_FOUND = "NotFound"
    ENVIRONMENT_UNSUPPORTED = "EnvironmentUnsupported"
    INJECTION_FAILED = "InjectionFailed"
    TIMEOUT = "Timeout"
    POLLING_TRANSIENT = "PollingTransientError"
    UNKNOWN = "Unknown"


class RunState(str, Enum):
    """单次运行的状态"""
    IDLE = "idle"
    ACQUIRING = "acquiring"
    REQUESTING = "requesting"
    SPOOFING = "spoofing"
    MONITORING = "monitoring"


class MonitorState(str, Enum):
    """进度监控状态"""
    MONITORING = "monitoring"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    CANCELLED = "cancelled"


class MessageType(str, Enum):
    """通道消息类型"""
    QUEST_UPDATE = "quest-update"
    STATUS_UPDATE = "status-update"
    LOG = "log"
    USER_UPDATE = "user-update"
    EXECUTE_QUEST = "execute-quest"
    GET_QUESTS = "get-quests"
    GET_STATUS = "get-status"


# 客户端会按类型再次分发的消息
TYPED_EVENTS = (
    MessageType.QUEST_UPDATE,
    MessageType.STATUS_UPDATE,
    MessageType.LOG,
    MessageType.USER_UPDATE,
)

# 宿主广播的运行中游戏变更事件
RUNNING_GAMES_CHANGE = "RUNNING_GAMES_CHANGE"

# 事件流主题
TOPIC_LOG = "log"
TOPIC_PROGRESS = "progress"
TOPIC_PROGRESS_CLEARED = "progress-cleared"
TOPIC_REFRESH = "refresh"
TOPIC_ACTIVITY = "activity"

# 伪装进程号范围
SPOOF_PID_MIN = 1000
SPOOF_PID_MAX = 30999
