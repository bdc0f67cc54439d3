# test/test_main.py
import json
from types import SimpleNamespace

import pytest

import main
from fakes import FakeMonitor, FakeSession
from media_models import ManagerMessage, MediaCommand
from monitors.base_monitor import MediaMonitorError
from monitors.windows_monitor import WINSDK_AVAILABLE, WindowsMediaMonitor


@pytest.fixture
def argv_base(tmp_path):
    return ["--config", str(tmp_path / "missing.ini")]


def test_current_json(monitor, argv_base, capsys):
    assert main.main(argv_base + ["current", "--json"], monitor=monitor) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["artist"] == "s1 artist"


def test_current_pretty(monitor, argv_base, capsys):
    assert main.main(argv_base + ["current"], monitor=monitor) == 0
    assert "Currently Playing: s1 artist - s1 title" in capsys.readouterr().out


def test_play_dispatches_command(monitor, argv_base):
    assert main.main(argv_base + ["play"], monitor=monitor) == 0
    assert monitor.commands == [("s1", MediaCommand.PLAY)]


def test_no_session_exits_with_error(argv_base):
    assert main.main(argv_base + ["next"], monitor=FakeMonitor(current=None)) == 1


def test_sessions_lists_every_session(argv_base, capsys):
    s1, s2 = FakeSession("s1"), FakeSession("s2")
    monitor = FakeMonitor(current=s1, sessions=[s1, s2])
    monitor.foreground = "s2.exe"

    assert main.main(argv_base + ["sessions"], monitor=monitor) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert lines[1].startswith("* AUMID: s2")


def test_sessions_when_none_are_active(argv_base, capsys):
    monitor = FakeMonitor(current=None, sessions=[])
    assert main.main(argv_base + ["sessions"], monitor=monitor) == 0
    assert "未发现任何活动媒体会话" in capsys.readouterr().out


def test_watch_exits_when_manager_cannot_start():
    monitor = FakeMonitor(current=None)
    config = SimpleNamespace(wait_for_session=False, timeline_only_when_playing=True)

    assert main.run_watch(monitor, config) == 1
    assert monitor.live_tokens() == 0


def test_watch_exits_when_subscription_fails():
    monitor = FakeMonitor(current=FakeSession("s1"))
    config = SimpleNamespace(wait_for_session=True, timeline_only_when_playing=True)
    monitor.fail_subscribe = {ManagerMessage.MEDIA_CHANGED}

    # 管理器在构造时订阅失败，整个监听命令随之退出
    assert main.run_watch(monitor, config) == 1
    assert monitor.live_tokens() == 0


@pytest.mark.skipif(WINSDK_AVAILABLE, reason="winsdk 已安装")
def test_windows_monitor_requires_winsdk():
    with pytest.raises(MediaMonitorError):
        WindowsMediaMonitor()
