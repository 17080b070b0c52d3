"""测试公共夹具：确保未安装时也能从 src 目录导入 phasetracker。"""  # 模块说明。
import sys  # 导入 sys 以调整模块搜索路径。
from pathlib import Path  # 导入 Path 以定位 src 目录。

import pytest  # 导入 pytest 以定义夹具。

SRC = Path(__file__).resolve().parents[1] / "src"  # 计算源码目录路径。
if str(SRC) not in sys.path:  # 若源码目录未在 sys.path 中。
    sys.path.insert(0, str(SRC))  # 将其加入模块搜索路径。


class RecordingLog:
    """记录 debug 消息的最小日志目标，替代真实日志器。"""  # 类说明。

    def __init__(self) -> None:
        self.messages: list[str] = []

    def debug(self, message: str) -> None:
        self.messages.append(message)


class ManualClock:
    """手动推进的纳秒时钟，供追踪器测试控制经过的时间。"""  # 类说明。

    def __init__(self) -> None:
        self.now = 0

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(round(seconds * 1_000_000_000))  # 秒换算为纳秒。


@pytest.fixture
def recording_log() -> RecordingLog:
    """提供一个空的消息记录器。"""  # 夹具说明。
    return RecordingLog()


@pytest.fixture
def manual_clock() -> ManualClock:
    """提供一个从 0 开始的手动时钟。"""  # 夹具说明。
    return ManualClock()


@pytest.fixture(autouse=True)
def _clear_period_toggle(monkeypatch: pytest.MonkeyPatch) -> None:
    """避免外部环境中的周期开关影响测试结果。"""  # 夹具说明。
    monkeypatch.delenv("PHASETRACKER_PERIOD_INTERVAL", raising=False)
