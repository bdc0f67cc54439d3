# media_commands.py
import asyncio
import json
import logging
import time

from media_models import MediaCommand, MusicInfo
from monitors.base_monitor import BaseMediaMonitor

# 命令发出后等待平台处理的默认时间（毫秒）
DEFAULT_SETTLE_MS = 50


def get_current_session(monitor: BaseMediaMonitor):
    """获取当前媒体会话，没有时抛出 NoActiveSession。其他函数大多都需要这个会话。"""
    return monitor.get_current_session()


def _run_command(monitor: BaseMediaMonitor, session, command: MediaCommand, settle_ms: int) -> bool:
    """
    发送命令，并在成功发出后等待一小段时间。
    平台调用对我们来说是“发出即忘”的，进程过早退出会导致命令丢失。
    """
    accepted = asyncio.run(monitor.send_command(session, command))
    logging.debug(f"命令 {command.value} 已发送，平台{'接受' if accepted else '拒绝'}了该命令。")
    if settle_ms > 0:
        time.sleep(settle_ms / 1000)
    return accepted


def previous_track(monitor: BaseMediaMonitor, session, settle_ms: int = DEFAULT_SETTLE_MS) -> bool:
    """在给定会话上切换到上一首。"""
    return _run_command(monitor, session, MediaCommand.PREVIOUS, settle_ms)


def next_track(monitor: BaseMediaMonitor, session, settle_ms: int = DEFAULT_SETTLE_MS) -> bool:
    """在给定会话上切换到下一首。"""
    return _run_command(monitor, session, MediaCommand.NEXT, settle_ms)


def play(monitor: BaseMediaMonitor, session, settle_ms: int = DEFAULT_SETTLE_MS) -> bool:
    """恢复播放。"""
    return _run_command(monitor, session, MediaCommand.PLAY, settle_ms)


def pause(monitor: BaseMediaMonitor, session, settle_ms: int = DEFAULT_SETTLE_MS) -> bool:
    """暂停播放。"""
    return _run_command(monitor, session, MediaCommand.PAUSE, settle_ms)


def get_music_info(monitor: BaseMediaMonitor, session) -> MusicInfo:
    """读取给定会话的当前播放快照。"""
    media_props = asyncio.run(monitor.get_media_properties(session))
    timeline = monitor.get_timeline_properties(session)
    playback_info = monitor.get_playback_info(session)
    return MusicInfo(
        title=media_props.title,
        artist=media_props.artist,
        album_title=media_props.album_title,
        finished_percentage=str(timeline.finished_percentage()),
        status=playback_info.playback_status,
    )


def currently_playing_raw(monitor: BaseMediaMonitor, session) -> str:
    """返回当前播放信息的 JSON 字符串。"""
    return json.dumps(get_music_info(monitor, session).to_dict(), ensure_ascii=False)


def currently_playing(monitor: BaseMediaMonitor, session) -> str:
    """返回格式化后的当前播放信息，用于控制台输出。"""
    return get_music_info(monitor, session).format()


def list_sessions(monitor: BaseMediaMonitor) -> list[dict]:
    """
    列出所有带标题的会话，并标记出应用位于前台窗口的那一个。

    Returns:
        list[dict]: 每个字典包含 'aumid'、'title' 和 'foreground'。
    """
    sessions = asyncio.run(monitor.list_sessions())
    foreground = monitor.get_foreground_window_aumid()
    # 进程名只是 AUMID 的近似，去掉扩展名后做包含判断
    foreground_stem = foreground.lower().rsplit(".exe", 1)[0] if foreground else ""
    for session in sessions:
        session["foreground"] = bool(foreground_stem) and foreground_stem in session["aumid"].lower()
    return sessions
