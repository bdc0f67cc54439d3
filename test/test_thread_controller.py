# test/test_thread_controller.py
import threading

import pytest

from fakes import wait_until
from thread_controller import (Channel, ChannelClosed, Echo, Stop,
                               ThreadController, Worker, WorkerError)


def stop_on_stop(rx):
    """最简单的线程主体：收到 Stop 就退出。"""
    while True:
        if isinstance(rx.recv(), Stop):
            break


def recording_body(received: list):
    def body(rx):
        while True:
            message = rx.recv()
            if isinstance(message, Stop):
                break
            received.append(message)
    return body


def test_channel_delivers_queued_messages_before_close():
    channel = Channel()
    channel.send(Echo("a"))
    channel.send(Echo("b"))
    channel.close()

    assert channel.recv() == Echo("a")
    assert channel.recv() == Echo("b")
    with pytest.raises(ChannelClosed):
        channel.recv()
    # 关闭之后每次接收都失败
    with pytest.raises(ChannelClosed):
        channel.recv()
    with pytest.raises(ChannelClosed):
        channel.send(Echo("c"))


def test_worker_stop_ends_thread():
    worker = Worker(stop_on_stop)
    assert not worker.is_finished()

    worker.stop()
    assert worker.is_finished()


def test_worker_send_after_body_exits_raises_channel_closed():
    worker = Worker(lambda rx: None)
    wait_until(worker.is_finished)

    with pytest.raises(ChannelClosed):
        worker.send(Echo("too late"))


def test_worker_join_reraises_body_exception():
    def body(rx):
        raise ValueError("boom")

    worker = Worker(body)
    wait_until(worker.is_finished)

    with pytest.raises(WorkerError) as excinfo:
        worker.join()
    assert isinstance(excinfo.value.__cause__, ValueError)


def test_worker_cannot_be_used_after_join():
    worker = Worker(lambda rx: None)
    worker.join()

    with pytest.raises(RuntimeError):
        worker.join()
    with pytest.raises(RuntimeError):
        worker.send(Echo("x"))


def test_stop_tolerates_body_that_already_exited():
    worker = Worker(lambda rx: None)
    wait_until(worker.is_finished)
    # 不应该阻塞也不应该报错
    worker.stop()


def test_add_thread_chains_and_counts():
    shared = Channel()
    controller = ThreadController(shared)
    assert controller.threads_count() == 0

    workers = [Worker(stop_on_stop), Worker(stop_on_stop)]
    assert controller.add_thread(workers[0]).add_thread(workers[1]) is controller
    assert controller.threads_count() == 2
    controller.stop_all_threads()
    assert all(w.is_finished() for w in workers)


@pytest.mark.parametrize("count", [0, 1, 2, 5])
def test_begin_stops_every_worker_on_stop(count):
    shared = Channel()
    workers = [Worker(stop_on_stop) for _ in range(count)]
    controller = ThreadController(shared)
    for worker in workers:
        controller.add_thread(worker)
    assert controller.threads_count() == count

    shared.send(Stop())
    controller.begin()

    assert all(w.is_finished() for w in workers)
    assert controller.threads_count() == 0


def test_echo_reaches_every_worker_once_in_order():
    shared = Channel()
    received = [[], [], []]
    workers = [Worker(recording_body(r)) for r in received]
    controller = ThreadController(shared)
    for worker in workers:
        controller.add_thread(worker)

    shared.send(Echo("x"))
    shared.send(Echo("y"))
    shared.send(Stop())
    controller.begin()

    for messages in received:
        assert messages == [Echo("x"), Echo("y")]


def test_send_all_skips_finished_workers():
    received = []
    finished = Worker(lambda rx: None)
    alive = Worker(recording_body(received))
    wait_until(finished.is_finished)

    controller = ThreadController(Channel()).add_thread(finished).add_thread(alive)
    controller.send_all(Echo("hello"))
    controller.stop_all_threads()

    assert received == [Echo("hello")]


def test_stop_all_threads_skips_finished_workers_without_blocking():
    finished = Worker(lambda rx: None)
    wait_until(finished.is_finished)
    running = Worker(stop_on_stop)

    controller = ThreadController(Channel()).add_thread(finished).add_thread(running)
    controller.stop_all_threads()

    assert running.is_finished()
    assert controller.threads_count() == 0


def test_stop_all_threads_shuts_down_in_reverse_insertion_order():
    order = []
    lock = threading.Lock()

    def body(name):
        def run(rx):
            stop_on_stop(rx)
            with lock:
                order.append(name)
        return run

    controller = ThreadController(Channel())
    for name in ("first", "second", "third"):
        controller.add_thread(Worker(body(name)))
    controller.stop_all_threads()

    assert order == ["third", "second", "first"]


def test_stop_all_threads_continues_after_a_failing_worker():
    def fails_on_stop(rx):
        stop_on_stop(rx)
        raise RuntimeError("cleanup failed")

    ok = Worker(stop_on_stop)
    failing = Worker(fails_on_stop)
    controller = ThreadController(Channel()).add_thread(ok).add_thread(failing)

    with pytest.raises(WorkerError):
        controller.stop_all_threads()
    assert ok.is_finished()


def test_join_all_threads_waits_for_self_terminating_workers():
    done = []
    workers = [Worker(lambda rx, i=i: done.append(i)) for i in range(3)]
    controller = ThreadController(Channel())
    for worker in workers:
        controller.add_thread(worker)

    controller.join_all_threads()
    assert sorted(done) == [0, 1, 2]
    assert controller.threads_count() == 0


def test_begin_surfaces_closed_shared_channel():
    shared = Channel()
    worker = Worker(stop_on_stop)
    controller = ThreadController(shared).add_thread(worker)

    shared.close()
    with pytest.raises(ChannelClosed):
        controller.begin()
    assert worker.is_finished()


def test_begin_keeps_channel_closed_when_a_worker_fails_to_stop():
    def fails_on_stop(rx):
        stop_on_stop(rx)
        raise RuntimeError("cleanup failed")

    shared = Channel()
    ok = Worker(stop_on_stop)
    failing = Worker(fails_on_stop)
    controller = ThreadController(shared).add_thread(ok).add_thread(failing)

    shared.close()
    # 关闭线程时的失败只记录日志，调用方看到的仍然是通道关闭
    with pytest.raises(ChannelClosed):
        controller.begin()
    assert ok.is_finished()
    assert failing.is_finished()
    assert controller.threads_count() == 0


def test_begin_relays_from_producer_threads():
    shared = Channel()
    received = []
    worker = Worker(recording_body(received))

    def producer(rx):
        shared.send(Echo("Hello there!"))
        shared.send(Stop())

    sender = Worker(producer)
    ThreadController(shared).add_thread(worker).add_thread(sender).begin()

    assert received == [Echo("Hello there!")]
    assert worker.is_finished()
