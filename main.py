# main.py
import argparse
import logging
import sys
import time

from config_loader import get_config
from logger_setup import setup_logging
from media_commands import (currently_playing, currently_playing_raw,
                            get_current_session, list_sessions, next_track,
                            pause, play, previous_track)
from media_manager import MediaManager
from monitors.base_monitor import BaseMediaMonitor, MediaMonitorError
from monitors.windows_monitor import WindowsMediaMonitor
from thread_controller import Channel, Stop, ThreadController, Worker, WorkerError

# 主线程等待转发线程时的轮询间隔（秒）
WAIT_INTERVAL = 0.2

COMMANDS = {
    'play': play,
    'pause': pause,
    'next': next_track,
    'previous': previous_track,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='smtc-control',
        description="控制并观察 Windows 当前的媒体播放会话。",
    )
    parser.add_argument('--config', default='config.ini', help="配置文件路径 (默认: config.ini)")
    parser.add_argument('--log-level', default=None, help="日志级别，覆盖配置文件中的设置")

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('play', help="播放当前曲目")
    subparsers.add_parser('pause', help="暂停当前曲目")
    subparsers.add_parser('next', help="播放下一首")
    subparsers.add_parser('previous', help="播放上一首")
    current = subparsers.add_parser('current', help="查看当前正在播放的内容")
    current.add_argument('--json', action='store_true', help="以 JSON 格式输出")
    subparsers.add_parser('sessions', help="列出所有活动的媒体会话")
    subparsers.add_parser('watch', help="持续监听媒体变化并输出报告")
    return parser


def print_sessions(sessions: list[dict]):
    """打印所有可用的媒体会话，前台应用用 * 标记。"""
    if not sessions:
        print("未发现任何活动媒体会话。请打开一个播放器并播放媒体。")
        return
    for sess in sessions:
        marker = "*" if sess['foreground'] else " "
        print(f"{marker} AUMID: {sess['aumid']:<50} | 标题: {sess['title']}")


def run_watch(monitor: BaseMediaMonitor, config, reporter=None) -> int:
    """
    监听模式：媒体管理器运行在一个工作线程中，由线程控制器转发共享通道上的消息。
    Ctrl+C 会向共享通道发送 Stop，控制器随之停止所有线程。

    Returns:
        int: 退出码。媒体管理器异常退出时返回 1。
    """
    shared = Channel()

    def manager_body(rx):
        manager = MediaManager(
            monitor, rx, reporter=reporter,
            wait_for_session=config.wait_for_session,
            timeline_only_when_playing=config.timeline_only_when_playing,
        )
        manager.start_sync()

    watcher = Worker(manager_body, name='media-manager')
    controller = ThreadController(shared).add_thread(watcher)
    relay = Worker(lambda _rx: controller.begin(), name='thread-controller')

    print("正在监听媒体变化... (按 Ctrl+C 退出)", flush=True)
    stop_sent = False
    # 在 Windows 上无超时的 join() 无法被 Ctrl+C 打断，所以这里轮询
    while not relay.is_finished():
        try:
            if watcher.is_finished() and not stop_sent:
                logging.error("媒体管理器已退出，正在关闭...")
                shared.send(Stop())
                stop_sent = True
            time.sleep(WAIT_INTERVAL)
        except KeyboardInterrupt:
            if not stop_sent:
                logging.info("收到中断信号，正在停止...")
                shared.send(Stop())
                stop_sent = True

    try:
        relay.join()
    except WorkerError as e:
        logging.error(f"线程控制器异常退出: {e}")
        return 1
    return 1 if watcher.exception is not None else 0


def run(args, monitor: BaseMediaMonitor, config) -> int:
    """执行一个子命令，返回退出码。"""
    if args.command == 'watch':
        return run_watch(monitor, config)
    if args.command == 'sessions':
        print_sessions(list_sessions(monitor))
        return 0

    session = get_current_session(monitor)
    if args.command == 'current':
        if args.json:
            print(currently_playing_raw(monitor, session))
        else:
            print(currently_playing(monitor, session))
        return 0

    accepted = COMMANDS[args.command](monitor, session, config.settle_ms)
    if not accepted:
        logging.warning(f"当前会话没有接受 {args.command} 命令。")
    return 0


def main(argv=None, monitor: BaseMediaMonitor | None = None) -> int:
    """
    命令行主入口函数。
    """
    args = build_parser().parse_args(argv)
    config = get_config(args.config)
    setup_logging(config, args.log_level)

    try:
        if monitor is None:
            monitor = WindowsMediaMonitor()
        return run(args, monitor, config)
    except MediaMonitorError as e:
        logging.error(f"{e}")
        return 1
    except KeyboardInterrupt:
        logging.info("已取消。")
        return 130


if __name__ == '__main__':
    sys.exit(main())
