# monitors/windows_monitor.py
import asyncio
import logging
import threading
from dataclasses import fields

from media_models import (ActiveControls, ManagerMessage, MediaCommand,
                          MediaProps, PlaybackInfoProps, TimelineProps,
                          playback_status_string)

# 导入抽象基类和异常
from .base_monitor import (BaseMediaMonitor, MediaMonitorError, NoActiveSession,
                           QueryFailure, SubscriptionFailure)

# 尝试导入Windows平台特定的库
try:
    import win32gui
    import win32process
    from psutil import Process
    from winsdk.windows.media.control import (
        GlobalSystemMediaTransportControlsSessionManager as MediaManager
    )
    WINSDK_AVAILABLE = True
except ImportError:
    WINSDK_AVAILABLE = False
    # 如果缺少库，在代码加载时就给出提示
    logging.debug("缺少 Windows 平台所需的库 (winsdk, pywin32, psutil)。媒体控制功能将不可用。")


def _enum_name(value, default: str = "UNKNOWN") -> str:
    """将平台枚举（或可空引用）转换为大写名称。"""
    if value is None:
        return default
    name = getattr(value, "name", None)
    return name.upper() if name else str(value)


class WindowsMediaMonitor(BaseMediaMonitor):
    """
    Windows平台的媒体监控器实现。
    使用Windows SMTC API (GlobalSystemMediaTransportControls) 读取和控制媒体会话。
    """

    # 会话级别事件对应的 winsdk 订阅/取消订阅方法名
    _SESSION_EVENT_METHODS = {
        ManagerMessage.MEDIA_CHANGED: ("add_media_properties_changed", "remove_media_properties_changed"),
        ManagerMessage.TIMELINE_CHANGED: ("add_timeline_properties_changed", "remove_timeline_properties_changed"),
        ManagerMessage.PLAYBACK_INFO_CHANGED: ("add_playback_info_changed", "remove_playback_info_changed"),
    }

    _COMMAND_METHODS = {
        MediaCommand.PLAY: "try_play_async",
        MediaCommand.PAUSE: "try_pause_async",
        MediaCommand.NEXT: "try_skip_next_async",
        MediaCommand.PREVIOUS: "try_skip_previous_async",
    }

    def __init__(self):
        """
        初始化媒体监视器。
        如果 winsdk 不可用，将引发异常。
        """
        if not WINSDK_AVAILABLE:
            raise MediaMonitorError("winsdk 库未安装或不完整。请运行 'pip install winsdk'。")
        self._manager = None
        self._manager_lock = threading.Lock()

    def _get_manager(self):
        """懒加载会话管理器。可以在任何线程中调用。"""
        with self._manager_lock:
            if self._manager is None:
                try:
                    self._manager = asyncio.run(self._request_manager())
                except Exception as e:
                    raise MediaMonitorError(f"无法获取媒体会话管理器: {e}") from e
            return self._manager

    async def _get_manager_async(self):
        """协程版本的 _get_manager，供已经运行在事件循环中的方法使用。"""
        if self._manager is None:
            try:
                manager = await self._request_manager()
            except Exception as e:
                raise MediaMonitorError(f"无法获取媒体会话管理器: {e}") from e
            with self._manager_lock:
                if self._manager is None:
                    self._manager = manager
        return self._manager

    async def _request_manager(self):
        return await MediaManager.request_async()

    def get_current_session(self):
        manager = self._get_manager()
        try:
            session = manager.get_current_session()
        except Exception as e:
            raise QueryFailure(f"读取当前媒体会话失败: {e}") from e
        if session is None:
            raise NoActiveSession("当前没有活动的媒体会话。")
        return session

    def session_id(self, session) -> str:
        try:
            return session.source_app_user_model_id
        except Exception as e:
            raise QueryFailure(f"读取会话标识失败: {e}") from e

    def add_session_changed(self, handler):
        try:
            return self._get_manager().add_current_session_changed(lambda sender, args: handler())
        except Exception as e:
            raise SubscriptionFailure(f"订阅会话变化事件失败: {e}") from e

    def remove_session_changed(self, token):
        try:
            self._get_manager().remove_current_session_changed(token)
        except Exception as e:
            raise SubscriptionFailure(f"取消订阅会话变化事件失败: {e}") from e

    def add_session_listener(self, session, kind: ManagerMessage, handler):
        add_name, _ = self._SESSION_EVENT_METHODS[kind]
        try:
            return getattr(session, add_name)(lambda sender, args: handler())
        except Exception as e:
            raise SubscriptionFailure(f"订阅 {kind.value} 事件失败: {e}") from e

    def remove_session_listener(self, session, kind: ManagerMessage, token):
        _, remove_name = self._SESSION_EVENT_METHODS[kind]
        try:
            getattr(session, remove_name)(token)
        except Exception as e:
            raise SubscriptionFailure(f"取消订阅 {kind.value} 事件失败: {e}") from e

    async def get_media_properties(self, session) -> MediaProps:
        try:
            info = await session.try_get_media_properties_async()
        except Exception as e:
            raise QueryFailure(f"读取媒体属性失败: {e}") from e
        return MediaProps(
            album_artist=info.album_artist, album_title=info.album_title,
            album_track_count=info.album_track_count, artist=info.artist,
            playback_type=_enum_name(info.playback_type),
            subtitle=info.subtitle, title=info.title,
            track_number=info.track_number,
        )

    def get_timeline_properties(self, session) -> TimelineProps:
        try:
            timeline = session.get_timeline_properties()
        except Exception as e:
            raise QueryFailure(f"读取时间轴属性失败: {e}") from e
        # winsdk 已将 TimeSpan 转换为 timedelta，DateTime 转换为 datetime
        return TimelineProps(
            start_time=timeline.start_time, end_time=timeline.end_time,
            min_seek_time=timeline.min_seek_time, max_seek_time=timeline.max_seek_time,
            position=timeline.position, last_updated_time=timeline.last_updated_time,
        )

    def get_playback_info(self, session) -> PlaybackInfoProps:
        try:
            info = session.get_playback_info()
        except Exception as e:
            raise QueryFailure(f"读取播放信息失败: {e}") from e
        controls = info.controls
        return PlaybackInfoProps(
            playback_status=playback_status_string(info.playback_status),
            playback_type=_enum_name(info.playback_type),
            is_shuffle_active=info.is_shuffle_active,
            auto_repeat_mode=_enum_name(info.auto_repeat_mode, default=None),
            playback_rate=info.playback_rate,
            controls=ActiveControls(**{
                f.name: bool(getattr(controls, f.name, False))
                for f in fields(ActiveControls)
            }),
        )

    async def send_command(self, session, command: MediaCommand) -> bool:
        try:
            return await getattr(session, self._COMMAND_METHODS[command])()
        except Exception as e:
            raise QueryFailure(f"发送 {command.value} 命令失败: {e}") from e

    async def list_sessions(self) -> list[dict]:
        """
        异步列出所有当前活动的媒体会话的基本信息。
        """
        manager = await self._get_manager_async()
        try:
            sessions = manager.get_sessions()
        except Exception as e:
            raise QueryFailure(f"读取媒体会话列表失败: {e}") from e
        session_list = []
        for session in sessions:
            try:
                info = await session.try_get_media_properties_async()
                # 只有包含标题的会话才是有意义的媒体会话
                if info and info.title:
                    session_list.append({
                        "aumid": session.source_app_user_model_id,
                        "title": info.title
                    })
            except Exception as e:
                # 某些会话可能在查询时失效，直接跳过
                logging.debug(f"跳过无法读取的会话: {e}")
                continue
        return session_list

    def get_foreground_window_aumid(self) -> str | None:
        """
        获取当前前台窗口的进程名，作为AUMID的代理。
        注意：这只是一个近似方法，并非所有进程名都等于其AUMID。
        """
        try:
            hwnd = win32gui.GetForegroundWindow()
            if hwnd:
                _, pid = win32process.GetWindowThreadProcessId(hwnd)
                return Process(pid).name()
        except Exception:
            return None
        return None
