# media_manager.py
import asyncio
import logging

from media_models import ManagerMessage, PlaybackStatus, format_report
from monitors.base_monitor import (SESSION_EVENTS, BaseMediaMonitor,
                                   MediaMonitorError, NoActiveSession,
                                   SubscriptionFailure)
from thread_controller import Channel, ChannelClosed, Echo, Media, Stop


def make_handler(channel: Channel, kind: ManagerMessage):
    """
    创建一个平台事件回调。

    回调只持有通道，不持有管理器本身；它在平台的线程上运行，唯一的工作就是
    把事件放进管理器的通道。
    """
    def handler():
        try:
            channel.send(Media(kind))
        except ChannelClosed:
            logging.debug(f"[Media Manager] 管理器已退出，丢弃事件 {kind.value}。")
    return handler


def console_report(kind: ManagerMessage, props):
    """默认的报告方式：直接打印到控制台。"""
    print(format_report(kind, props), flush=True)


class SubscriptionSet:
    """
    一组完整的事件订阅：一个管理器级别的会话变化订阅，加上绑定到某个会话的
    三个会话级别订阅。未绑定会话时 session 为 None，只保留管理器级别的订阅。
    """
    def __init__(self, session_changed, session=None, session_tokens: dict | None = None):
        self.session_changed = session_changed
        self.session = session
        self.session_tokens = session_tokens or {}

    @property
    def count(self) -> int:
        live = len(self.session_tokens)
        return live + 1 if self.session_changed is not None else live

    @staticmethod
    def install_session_listeners(monitor: BaseMediaMonitor, session, channel: Channel) -> dict:
        """
        在会话上安装三个会话级别订阅。

        如果中途失败，已经安装的订阅会被回滚，然后抛出 SubscriptionFailure。
        """
        tokens = {}
        try:
            for kind in SESSION_EVENTS:
                tokens[kind] = monitor.add_session_listener(session, kind, make_handler(channel, kind))
        except SubscriptionFailure:
            for kind, token in tokens.items():
                try:
                    monitor.remove_session_listener(session, kind, token)
                except MediaMonitorError as e:
                    logging.warning(f"[Media Manager] 回滚订阅 {kind.value} 失败: {e}")
            raise
        return tokens

    def remove_session_listeners(self, monitor: BaseMediaMonitor, strict: bool = True):
        """
        取消三个会话级别订阅。

        strict 为 True 时第一个失败会抛出 SubscriptionFailure（剩下的订阅仍会尝试取消）；
        为 False 时只记录日志。
        """
        first_error = None
        for kind, token in self.session_tokens.items():
            try:
                monitor.remove_session_listener(self.session, kind, token)
            except MediaMonitorError as e:
                logging.warning(f"[Media Manager] 取消订阅 {kind.value} 失败: {e}")
                first_error = first_error or e
        self.session_tokens = {}
        if strict and first_error is not None:
            raise first_error

    def release(self, monitor: BaseMediaMonitor):
        """取消全部订阅，错误只记录日志。"""
        self.remove_session_listeners(monitor, strict=False)
        if self.session_changed is not None:
            try:
                monitor.remove_session_changed(self.session_changed)
            except MediaMonitorError as e:
                logging.warning(f"[Media Manager] 取消订阅会话变化事件失败: {e}")
            self.session_changed = None
        self.session = None


class MediaManager:
    """
    媒体管理器（会话观察者）。

    始终持有恰好一组有效订阅，并且这组订阅总是绑定在 current_session 上。
    当前会话变化时，先取消旧会话上的订阅，再在新会话上重新订阅。
    所有订阅状态只在 start_sync() 所在的线程中修改；平台回调只向通道发送消息。

    Example:
        # worker = Worker(lambda rx: MediaManager(WindowsMediaMonitor(), rx).start_sync())
        # ...
        # worker.stop()
    """
    def __init__(self, monitor: BaseMediaMonitor, channel: Channel, reporter=None,
                 wait_for_session: bool = False, timeline_only_when_playing: bool = True):
        """
        Args:
            monitor (BaseMediaMonitor): 平台媒体监控器。
            channel (Channel): 管理器的入站通道，回调也通过它投递事件。
            reporter: reporter(kind, props)，属性变化时调用；默认打印到控制台。
            wait_for_session (bool): 没有当前会话时是否以未绑定状态启动。
            timeline_only_when_playing (bool): 只在播放中时报告时间轴变化。

        Raises:
            NoActiveSession: 没有当前会话且 wait_for_session 为 False。
            SubscriptionFailure: 订阅失败（已安装的订阅会先被释放）。
        """
        self.monitor = monitor
        self.rx = channel
        self.reporter = reporter or console_report
        self.timeline_only_when_playing = timeline_only_when_playing
        self._subscriptions: SubscriptionSet | None = None

        try:
            session = monitor.get_current_session()
        except NoActiveSession:
            if not wait_for_session:
                raise
            session = None
            logging.info("[Media Manager] 当前没有媒体会话，等待新的会话出现...")

        session_changed = monitor.add_session_changed(
            make_handler(channel, ManagerMessage.SESSION_CHANGED))
        subscriptions = SubscriptionSet(session_changed)
        if session is not None:
            try:
                subscriptions.session_tokens = SubscriptionSet.install_session_listeners(
                    monitor, session, channel)
            except SubscriptionFailure:
                subscriptions.release(monitor)
                raise
            subscriptions.session = session
        self._subscriptions = subscriptions

        logging.info("[Media Manager] 已创建新的媒体管理器。")

    @property
    def current_session(self):
        return self._subscriptions.session if self._subscriptions else None

    @property
    def is_bound(self) -> bool:
        return self.current_session is not None

    @property
    def subscription_count(self) -> int:
        return self._subscriptions.count if self._subscriptions else 0

    def start_sync(self):
        """
        阻塞运行事件循环，直到收到 Stop。

        无论以何种方式退出（Stop、订阅失败、通道关闭或其他异常），都会释放全部订阅。
        """
        try:
            while True:
                message = self.rx.recv()
                if isinstance(message, Stop):
                    logging.info("[Media Manager] 正在停止媒体管理器...")
                    break
                if isinstance(message, Media):
                    self._dispatch(message.event)
                elif isinstance(message, Echo):
                    logging.info(f"[Media Manager] echo: {message.text}")
        finally:
            self.dispose()

    def _dispatch(self, event: ManagerMessage):
        if event is ManagerMessage.SESSION_CHANGED:
            logging.info("[Media Manager] 会话已变化，正在更新会话信息...")
            self.session_changed()
        else:
            self.report(event)

    def session_changed(self):
        """
        重新绑定到平台当前的会话。

        顺序：取消旧会话上的三个订阅 -> 查询当前会话 -> 在新会话上订阅 -> 整体替换状态。
        没有当前会话时进入未绑定状态，等待下一次会话变化事件。
        订阅失败无法在本地恢复，直接抛出。
        """
        subscriptions = self._subscriptions
        if subscriptions is None or subscriptions.session_changed is None:
            raise SubscriptionFailure("会话变化订阅已失效，无法重新绑定。")

        subscriptions.remove_session_listeners(self.monitor)
        subscriptions.session = None

        try:
            session = self.monitor.get_current_session()
        except NoActiveSession:
            logging.warning("[Media Manager] 没有可用的会话，等待下一次会话变化。")
            return

        tokens = SubscriptionSet.install_session_listeners(self.monitor, session, self.rx)
        self._subscriptions = SubscriptionSet(subscriptions.session_changed, session, tokens)

        logging.info(f"[Media Manager] 新会话 ID: {self.monitor.session_id(session)}")

    def report(self, event: ManagerMessage):
        """
        读取当前会话的属性并报告。

        总是在查询时重新获取平台的当前会话，而不是使用事件触发时的会话，
        所以过期的事件最多只会导致一次无害的重复报告。查询失败只记录错误。
        """
        try:
            session = self.monitor.get_current_session()
            if event is ManagerMessage.TIMELINE_CHANGED:
                if self.timeline_only_when_playing:
                    status = self.monitor.get_playback_info(session).playback_status
                    if status != PlaybackStatus.PLAYING.name:
                        return
                props = self.monitor.get_timeline_properties(session)
            elif event is ManagerMessage.PLAYBACK_INFO_CHANGED:
                props = self.monitor.get_playback_info(session)
            else:
                props = asyncio.run(self.monitor.get_media_properties(session))
        except MediaMonitorError as e:
            logging.error(f"[Media Manager] 报告 {event.value} 时出错: {e}")
            return
        self.reporter(event, props)

    def dispose(self):
        """释放全部订阅和会话引用。可以重复调用。"""
        if self._subscriptions is None:
            return
        self._subscriptions.release(self.monitor)
        self._subscriptions = None
        logging.info("[Media Manager] 媒体管理器已释放。")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()
