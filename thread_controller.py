# thread_controller.py
import logging
import queue
import threading
from dataclasses import dataclass

from media_models import ManagerMessage


class ChannelClosed(Exception):
    """通道的另一端已经关闭，无法继续发送或接收。"""
    pass


class WorkerError(Exception):
    """工作线程的主体函数抛出了异常，在 join() 时重新抛出。"""
    pass


# 线程间传递的所有合法消息。具体的处理逻辑由各个线程自己实现。
@dataclass(frozen=True)
class ThreadMessage:
    pass


@dataclass(frozen=True)
class Stop(ThreadMessage):
    """终止消息：收到它的线程必须退出自己的循环。"""
    pass


@dataclass(frozen=True)
class Echo(ThreadMessage):
    """调试用消息，携带一段任意文本。"""
    text: str


@dataclass(frozen=True)
class Media(ThreadMessage):
    """媒体管理器的事件消息。"""
    event: ManagerMessage


# 关闭标记，只在通道内部使用
_CLOSED = object()


class Channel:
    """
    一个无界的先进先出通道，可以在任意线程中发送和接收。

    close() 之后 send() 会抛出 ChannelClosed；recv() 会先把关闭前已入队的消息
    全部交付，然后每次调用都抛出 ChannelClosed。
    """
    def __init__(self):
        self._queue = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False

    def send(self, message: ThreadMessage):
        with self._lock:
            if self._closed:
                raise ChannelClosed(f"无法发送 {message!r}：通道已关闭。")
            self._queue.put(message)

    def recv(self) -> ThreadMessage:
        """阻塞直到收到一条消息。"""
        message = self._queue.get()
        if message is _CLOSED:
            # 放回去，让之后的 recv() 同样失败
            self._queue.put(_CLOSED)
            raise ChannelClosed("通道已关闭，不会再有新消息。")
        return message

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_CLOSED)


class Worker:
    """
    拥有一个后台线程和一个入站通道的工作者。

    body 会在新线程中以该通道为唯一参数被调用，它负责自己的循环，
    并且必须识别 Stop 消息，否则线程永远不会结束。

    Example:
        # def body(rx):
        #     while True:
        #         if isinstance(rx.recv(), Stop):
        #             break
        #
        # worker = Worker(body)
        # worker.send(Echo("hi"))
        # worker.stop()
    """
    def __init__(self, body, name: str | None = None):
        self._channel = Channel()
        self._consumed = False
        self.exception: BaseException | None = None
        self._thread = threading.Thread(target=self._run, args=(body,), name=name)
        self._thread.start()

    @property
    def name(self) -> str:
        return self._thread.name

    def _run(self, body):
        try:
            body(self._channel)
        except Exception as e:
            self.exception = e
            logging.error(f"工作线程 '{self.name}' 异常退出: {e}", exc_info=True)
        finally:
            # 主体函数返回即视为接收端被丢弃
            self._channel.close()

    def is_finished(self) -> bool:
        """非阻塞地检查主体函数是否已经返回。"""
        return not self._thread.is_alive()

    def send(self, message: ThreadMessage):
        """向线程发送消息。如果线程已经退出，抛出 ChannelClosed。"""
        self._check_not_consumed()
        self._channel.send(message)

    def join(self):
        """
        阻塞等待主体函数返回。调用后该对象不可再使用。

        【注意】不要用它来停止线程，请使用 stop()。
        如果主体函数没有自然的退出条件，这个调用将永远阻塞。
        """
        self._check_not_consumed()
        self._consumed = True
        self._thread.join()
        if self.exception is not None:
            raise WorkerError(f"工作线程 '{self.name}' 执行失败: {self.exception}") from self.exception

    def stop(self):
        """发送 Stop 后等待线程结束。调用后该对象不可再使用。"""
        try:
            self.send(Stop())
        except ChannelClosed:
            # 线程在检查之后恰好退出了，直接 join 即可
            pass
        self.join()

    def _check_not_consumed(self):
        if self._consumed:
            raise RuntimeError(f"工作线程 '{self.name}' 已经被 join，不能再使用。")

    def __repr__(self):
        state = "finished" if self.is_finished() else "running"
        return f"<Worker(name='{self.name}', state='{state}')>"


class ThreadController:
    """
    线程控制器。

    持有一组 Worker 和一个共享的入站通道。begin() 会把收到的每条消息转发给所有
    仍在运行的 Worker；收到 Stop 时停止所有 Worker 并返回。
    添加顺序即关闭顺序的逆序（关闭时从末尾弹出）。

    Example:
        # shared = Channel()
        # ThreadController(shared).add_thread(echo).add_thread(sender).begin()
    """
    def __init__(self, rx: Channel):
        self.threads: list[Worker] = []
        self.rx = rx

    def add_thread(self, worker: Worker) -> 'ThreadController':
        self.threads.append(worker)
        return self

    def threads_count(self) -> int:
        return len(self.threads)

    def join_all_threads(self):
        """
        按添加顺序的逆序 join 所有线程。

        【警告】这个方法不会先发送 Stop。只有当每个线程都会自行结束时才可以安全使用，
        否则请使用 stop_all_threads()。
        """
        while self.threads:
            self.threads.pop().join()

    def stop_all_threads(self):
        """停止所有线程。已经结束的线程会被跳过，不会再收到任何消息。"""
        first_error = None
        while self.threads:
            worker = self.threads.pop()
            if worker.is_finished():
                continue
            try:
                worker.stop()
            except WorkerError as e:
                # 继续停止剩下的线程，最后再抛出
                first_error = first_error or e
        if first_error is not None:
            raise first_error

    def send_all(self, message: ThreadMessage):
        """把消息广播给所有仍在运行的线程。"""
        for worker in self.threads:
            if worker.is_finished():
                continue
            try:
                worker.send(message)
            except ChannelClosed:
                logging.debug(f"线程 '{worker.name}' 在广播期间退出，已跳过。")

    def begin(self):
        """
        启动控制器的消息转发循环，直到收到 Stop。

        共享通道被关闭（所有生产者都已离开）时抛出 ChannelClosed，
        因为控制器再也收不到任何指令了。
        """
        logging.info(f"线程控制器已启动，管理 {self.threads_count()} 个线程。")
        while True:
            try:
                message = self.rx.recv()
            except ChannelClosed:
                logging.error("共享通道已关闭，线程控制器无法再接收指令。")
                try:
                    self.stop_all_threads()
                except WorkerError as e:
                    logging.error(f"关闭线程时出错: {e}")
                raise
            if isinstance(message, Stop):
                logging.info("线程控制器收到停止消息，正在停止所有线程...")
                self.stop_all_threads()
                break
            self.send_all(message)
        logging.info("线程控制器已退出。")
