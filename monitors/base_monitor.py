# monitors/base_monitor.py
from abc import ABC, abstractmethod

from media_models import (ManagerMessage, MediaCommand, MediaProps,
                          PlaybackInfoProps, TimelineProps)


class MediaMonitorError(Exception):
    """媒体监控模块的异常基类。"""
    pass

class NoActiveSession(MediaMonitorError):
    """平台当前没有可用的媒体会话。"""
    pass

class SubscriptionFailure(MediaMonitorError):
    """订阅或取消订阅事件的调用被平台拒绝。"""
    pass

class QueryFailure(MediaMonitorError):
    """读取会话属性或发送命令失败。"""
    pass


# 会话级别的三种事件，会话变化事件属于管理器级别
SESSION_EVENTS = (
    ManagerMessage.MEDIA_CHANGED,
    ManagerMessage.TIMELINE_CHANGED,
    ManagerMessage.PLAYBACK_INFO_CHANGED,
)


class BaseMediaMonitor(ABC):
    """
    媒体监控器的抽象基类。
    定义了所有平台特定的监控器必须实现的通用接口。
    会话对象对调用方是不透明的，只能传回给同一个监控器使用。

    事件回调 handler 是一个无参数的可调用对象，会在平台自己的线程上被调用。
    """

    @abstractmethod
    def get_current_session(self) -> object:
        """
        获取平台认定的当前会话。

        Raises:
            NoActiveSession: 当前没有任何会话。
        """
        pass

    @abstractmethod
    def session_id(self, session) -> str:
        """返回会话来源应用的标识符（AUMID）。"""
        pass

    @abstractmethod
    def add_session_changed(self, handler) -> object:
        """订阅管理器级别的“当前会话变化”事件，返回注册令牌。"""
        pass

    @abstractmethod
    def remove_session_changed(self, token):
        pass

    @abstractmethod
    def add_session_listener(self, session, kind: ManagerMessage, handler) -> object:
        """
        在会话上订阅一种会话级别事件（媒体、时间轴或播放信息变化）。

        Returns:
            object: 注册令牌，取消订阅时必须原样传回。

        Raises:
            SubscriptionFailure: 平台拒绝了订阅。
        """
        pass

    @abstractmethod
    def remove_session_listener(self, session, kind: ManagerMessage, token):
        pass

    @abstractmethod
    async def get_media_properties(self, session) -> MediaProps:
        pass

    @abstractmethod
    def get_timeline_properties(self, session) -> TimelineProps:
        pass

    @abstractmethod
    def get_playback_info(self, session) -> PlaybackInfoProps:
        pass

    @abstractmethod
    async def send_command(self, session, command: MediaCommand) -> bool:
        """向会话发送一个传输控制命令，返回平台是否接受。"""
        pass

    @abstractmethod
    async def list_sessions(self) -> list[dict]:
        """
        异步列出所有当前活动的媒体会话。

        Returns:
            list[dict]: 每个字典至少包含 'aumid' 和 'title' 键。
        """
        pass

    def get_foreground_window_aumid(self) -> str | None:
        """
        获取当前前台窗口的应用标识符。
        这是一个可选实现的方法，默认返回 None。
        """
        return None
