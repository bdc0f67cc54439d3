# media_models.py
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum, IntEnum


class ManagerMessage(Enum):
    """媒体管理器可以收到的四种会话事件。"""
    SESSION_CHANGED = "session_changed"
    TIMELINE_CHANGED = "timeline_changed"
    PLAYBACK_INFO_CHANGED = "playback_info_changed"
    MEDIA_CHANGED = "media_changed"


class PlaybackStatus(IntEnum):
    """与 SMTC 的 PlaybackStatus 枚举取值一致。"""
    CLOSED = 0
    OPENED = 1
    CHANGING = 2
    STOPPED = 3
    PLAYING = 4
    PAUSED = 5


def playback_status_string(status) -> str:
    """将平台返回的播放状态转换为大写名称，无法识别时返回 UNDEFINED。"""
    if status is None:
        return "UNDEFINED"
    try:
        return PlaybackStatus(int(status)).name
    except (TypeError, ValueError):
        return "UNDEFINED"


def format_time(duration: timedelta) -> str:
    """将 timedelta 对象格式化为 HH:MM:SS"""
    if not isinstance(duration, timedelta):
        return "00:00:00"
    ts = int(duration.total_seconds())
    return f"{ts // 3600:02d}:{(ts % 3600) // 60:02d}:{ts % 60:02d}"


@dataclass
class MusicInfo:
    """`current` 命令输出的当前播放快照。字段顺序即 JSON 的键顺序。"""
    title: str
    artist: str
    album_title: str
    finished_percentage: str
    status: str

    def to_dict(self) -> dict:
        return asdict(self)

    def format(self) -> str:
        return (
            "=======================================\n"
            f"Currently Playing: {self.artist} - {self.title}\n"
            f"{self.finished_percentage}% Finished -- {self.status}\n"
            "======================================="
        )


@dataclass
class MediaProps:
    """媒体属性（标题、艺术家等）。"""
    album_artist: str = ""
    album_title: str = ""
    album_track_count: int = 0
    artist: str = ""
    playback_type: str = "UNKNOWN"
    subtitle: str = ""
    title: str = ""
    track_number: int = 0


@dataclass
class TimelineProps:
    """时间轴属性，时长均为 timedelta。"""
    start_time: timedelta = timedelta(0)
    end_time: timedelta = timedelta(0)
    min_seek_time: timedelta = timedelta(0)
    max_seek_time: timedelta = timedelta(0)
    position: timedelta = timedelta(0)
    last_updated_time: datetime | None = None

    def finished_percentage(self) -> int:
        """已播放的百分比（四舍五入），最大可定位时间为 0 时返回 0。"""
        total = self.max_seek_time.total_seconds()
        if total <= 0:
            return 0
        return round(self.position.total_seconds() / total * 100)


@dataclass
class ActiveControls:
    """会话当前启用的传输控制按钮。"""
    is_play_enabled: bool = False
    is_pause_enabled: bool = False
    is_stop_enabled: bool = False
    is_record_enabled: bool = False
    is_fast_forward_enabled: bool = False
    is_rewind_enabled: bool = False
    is_next_enabled: bool = False
    is_previous_enabled: bool = False
    is_channel_up_enabled: bool = False
    is_channel_down_enabled: bool = False
    is_play_pause_toggle_enabled: bool = False
    is_shuffle_enabled: bool = False
    is_repeat_enabled: bool = False
    is_playback_rate_enabled: bool = False
    is_playback_position_enabled: bool = False


@dataclass
class PlaybackInfoProps:
    """播放信息。可选字段在平台未提供时为 None。"""
    playback_status: str = "UNDEFINED"
    playback_type: str = "UNKNOWN"
    is_shuffle_active: bool | None = None
    auto_repeat_mode: str | None = None
    playback_rate: float | None = None
    controls: ActiveControls = field(default_factory=ActiveControls)


def format_report(kind: ManagerMessage, props) -> str:
    """
    将一次属性变化格式化为控制台输出块。

    Args:
        kind (ManagerMessage): 触发报告的事件类型。
        props: 与事件对应的属性对象。

    Returns:
        str: 以 START/END 行包围的多行文本。
    """
    if kind is ManagerMessage.TIMELINE_CHANGED:
        title = "TIMELINE"
        lines = [
            f"endtime: {format_time(props.end_time)}",
            f"last updated time: {props.last_updated_time}",
            f"max seek time: {format_time(props.max_seek_time)}",
            f"min seek time: {format_time(props.min_seek_time)}",
            f"pos: {format_time(props.position)}",
            f"start time: {format_time(props.start_time)}",
        ]
    elif kind is ManagerMessage.PLAYBACK_INFO_CHANGED:
        title = "PLAYBACK_INFO"
        lines = [
            f"shuffle active?: {bool(props.is_shuffle_active)}",
            f"pb status: {props.playback_status}",
            f"pb type: {props.playback_type}",
        ]
    elif kind is ManagerMessage.MEDIA_CHANGED:
        title = "MEDIA_PROP"
        lines = [
            f"album artist: {props.album_artist}",
            f"album title: {props.album_title}",
            f"album track count: {props.album_track_count}",
            f"artist: {props.artist}",
            f"pb type: {props.playback_type}",
            f"subtitle: {props.subtitle}",
            f"title: {props.title}",
            f"track #: {props.track_number}",
        ]
    else:
        raise ValueError(f"无法为事件 {kind} 生成报告")

    body = "\n".join(f"\t{line}" for line in lines)
    return f"-- START {title} CHANGE --\n{body}\n-- END {title} CHANGE --\n"


class MediaCommand(Enum):
    """可以发送给当前会话的传输控制命令。"""
    PLAY = "play"
    PAUSE = "pause"
    NEXT = "next"
    PREVIOUS = "previous"
