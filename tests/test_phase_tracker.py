"""阶段追踪器状态机、报告节奏与报告格式的测试集合。"""  # 模块说明。
import logging
import threading
from enum import Enum

import pytest

from phasetracker import (
    NULL_TRACKER,
    IndexPopulationPhase,
    LoggingPhaseTracker,
    TrackerState,
    TrackerStoppedError,
)
from phasetracker.utils.config import ConfigError


class Phase(Enum):
    """测试用的三阶段封闭集合。"""  # 类说明。

    A = 1
    B = 2
    C = 3


def _tracker(log, clock, interval: int = 600, phases=Phase, **kwargs):
    """用给定的手动时钟构造追踪器，返回 (tracker, clock)。"""  # 辅助函数说明。
    return LoggingPhaseTracker(log, interval, phases=phases, clock=clock, **kwargs), clock


def _counts(tracker, window: str = "cumulative") -> dict:
    return {phase.name: getattr(entry, window).report_count for phase, entry in tracker.entries.items()}


def test_entries_created_eagerly_in_declaration_order(recording_log, manual_clock) -> None:
    """每个阶段在构造时即拥有条目，顺序与声明顺序一致。"""  # 测试说明。
    tracker = LoggingPhaseTracker(recording_log, 600, clock=manual_clock)
    assert list(tracker.entries) == list(IndexPopulationPhase)
    assert tracker.state is TrackerState.IDLE
    assert tracker.current_phase is None


def test_interval_zero_reports_on_every_transition(recording_log, manual_clock) -> None:
    """间隔为 0 时每次切换都触发周期报告，停止时输出最终报告。"""  # 测试说明。
    tracker, clock = _tracker(recording_log, manual_clock, interval=0)
    tracker.enter_phase(Phase.A)
    clock.advance(1)
    tracker.enter_phase(Phase.B)
    clock.advance(2)
    tracker.enter_phase(Phase.C)
    clock.advance(3)
    tracker.stop()

    messages = recording_log.messages
    assert len(messages) == 4
    assert all(message.startswith("TIME/PHASE Total: ") for message in messages[:3])
    assert messages[3].startswith("TIME/PHASE Final: ")
    assert _counts(tracker) == {"A": 1, "B": 1, "C": 1}
    assert messages[0] == (
        "TIME/PHASE Total: A[nbrOfReports=0], B[nbrOfReports=0], C[nbrOfReports=0], "
        "Last 0 sec: A[nbrOfReports=0], B[nbrOfReports=0], C[nbrOfReports=0]"
    )
    assert messages[1] == (
        "TIME/PHASE Total: A[totalTime=1s, avgTime=1s, minTime=1s, maxTime=1s, nbrOfReports=1], "
        "B[nbrOfReports=0], C[nbrOfReports=0], "
        "Last 1 sec: A[totalTime=1s, avgTime=1s, minTime=1s, maxTime=1s, nbrOfReports=1], "
        "B[nbrOfReports=0], C[nbrOfReports=0]"
    )
    # 第三次报告的周期窗口中 A 已在上次报告后清零。
    assert "Last 2 sec: A[nbrOfReports=0], B[totalTime=2s" in messages[2]
    assert messages[3] == (
        "TIME/PHASE Final: A[totalTime=1s, avgTime=1s, minTime=1s, maxTime=1s, nbrOfReports=1], "
        "B[totalTime=2s, avgTime=2s, minTime=2s, maxTime=2s, nbrOfReports=1], "
        "C[totalTime=3s, avgTime=3s, minTime=3s, maxTime=3s, nbrOfReports=1]"
    )


def test_reannouncing_current_phase_is_noop(recording_log, manual_clock) -> None:
    """重复上报当前阶段不计数、不重置计时、不检查周期。"""  # 测试说明。
    tracker, clock = _tracker(recording_log, manual_clock, interval=0)
    tracker.enter_phase(Phase.A)
    clock.advance(1)
    tracker.enter_phase(Phase.A)
    clock.advance(1)
    tracker.enter_phase(Phase.A)
    assert len(recording_log.messages) == 1
    tracker.enter_phase(Phase.B)
    entry = tracker.entries[Phase.A].cumulative
    assert entry.report_count == 1
    assert entry.total_time == 2_000_000_000


def test_report_count_matches_distinct_transitions(recording_log, manual_clock) -> None:
    """计数总和等于不同阶段之间的切换次数。"""  # 测试说明。
    tracker, clock = _tracker(recording_log, manual_clock)
    sequence = [Phase.A, Phase.A, Phase.B, Phase.C, Phase.C, Phase.A, Phase.B, Phase.B]
    for phase in sequence:
        tracker.enter_phase(phase)
        clock.advance(0.01)
    distinct = sum(1 for previous, current in zip(sequence, sequence[1:]) if previous != current)
    assert sum(_counts(tracker).values()) == distinct


def test_first_transition_does_not_report_from_clock_age(recording_log, manual_clock) -> None:
    """时钟初值很大时，首次切换也不会立即触发周期报告。"""  # 测试说明。
    manual_clock.now = 10_000 * 1_000_000_000
    tracker = LoggingPhaseTracker(recording_log, 600, phases=Phase, clock=manual_clock)
    tracker.enter_phase(Phase.A)
    assert recording_log.messages == []


def test_periodic_report_resets_only_windowed_stats(recording_log, manual_clock) -> None:
    """周期报告在间隔到达时触发，仅清零周期统计。"""  # 测试说明。
    tracker, clock = _tracker(recording_log, manual_clock, interval=600)
    tracker.enter_phase(Phase.A)
    clock.advance(599)
    tracker.enter_phase(Phase.B)
    assert recording_log.messages == []
    assert _counts(tracker, "windowed") == {"A": 1, "B": 0, "C": 0}
    clock.advance(1)
    tracker.enter_phase(Phase.A)
    assert len(recording_log.messages) == 1
    assert "Last 600 sec: " in recording_log.messages[0]
    assert _counts(tracker, "windowed") == {"A": 0, "B": 0, "C": 0}
    assert _counts(tracker) == {"A": 1, "B": 1, "C": 0}


def test_no_periodic_report_without_transitions(recording_log, manual_clock) -> None:
    """没有阶段切换时不会产生周期报告，无论经过多长时间。"""  # 测试说明。
    tracker, clock = _tracker(recording_log, manual_clock, interval=10)
    tracker.enter_phase(Phase.A)
    clock.advance(3_600)
    assert recording_log.messages == []
    tracker.stop()
    assert len(recording_log.messages) == 1
    assert recording_log.messages[0].startswith("TIME/PHASE Final: A[totalTime=1h, ")


def test_stop_closes_out_current_phase(recording_log, manual_clock) -> None:
    """stop 结算当前阶段并进入终态。"""  # 测试说明。
    tracker, clock = _tracker(recording_log, manual_clock)
    tracker.enter_phase(Phase.B)
    clock.advance(0.25)
    tracker.stop()
    stats = tracker.entries[Phase.B].cumulative
    assert stats.report_count == 1
    assert stats.total_time == 250_000_000
    assert tracker.current_phase is None
    assert tracker.state is TrackerState.STOPPED
    assert tracker.stopped


def test_stop_from_idle_reports_all_phases_unvisited(recording_log, manual_clock) -> None:
    """从未进入任何阶段时，最终报告中每个阶段次数为 0。"""  # 测试说明。
    tracker, _ = _tracker(recording_log, manual_clock)
    tracker.stop()
    assert recording_log.messages == [
        "TIME/PHASE Final: A[nbrOfReports=0], B[nbrOfReports=0], C[nbrOfReports=0]"
    ]


def test_enter_phase_after_stop_raises_without_mutation(recording_log, manual_clock) -> None:
    """停止后再上报阶段必须抛出错误且不修改任何状态。"""  # 测试说明。
    tracker, clock = _tracker(recording_log, manual_clock, interval=0)
    tracker.enter_phase(Phase.A)
    clock.advance(1)
    tracker.stop()
    before = {phase: (entry.cumulative.report_count, entry.cumulative.total_time) for phase, entry in tracker.entries.items()}
    message_count = len(recording_log.messages)
    clock.advance(5)
    with pytest.raises(TrackerStoppedError):
        tracker.enter_phase(Phase.B)
    with pytest.raises(RuntimeError):
        tracker.enter_phase(Phase.A)
    after = {phase: (entry.cumulative.report_count, entry.cumulative.total_time) for phase, entry in tracker.entries.items()}
    assert after == before
    assert tracker.current_phase is None
    assert len(recording_log.messages) == message_count


def test_second_stop_is_noop(recording_log, manual_clock) -> None:
    """重复 stop 不会再次输出最终报告。"""  # 测试说明。
    tracker, _ = _tracker(recording_log, manual_clock)
    tracker.enter_phase(Phase.A)
    tracker.stop()
    tracker.stop()
    assert len(recording_log.messages) == 1


def test_unknown_phase_is_rejected(recording_log, manual_clock) -> None:
    """不属于封闭集合的阶段被拒绝。"""  # 测试说明。
    tracker, _ = _tracker(recording_log, manual_clock)
    with pytest.raises(ValueError):
        tracker.enter_phase(IndexPopulationPhase.SCAN)
    assert tracker.state is TrackerState.IDLE


def test_entries_mapping_is_read_only(recording_log, manual_clock) -> None:
    """对外暴露的条目映射不可修改。"""  # 测试说明。
    tracker, _ = _tracker(recording_log, manual_clock)
    with pytest.raises(TypeError):
        tracker.entries[Phase.A] = None  # type: ignore[index]


def test_default_interval_reads_feature_toggle(recording_log, monkeypatch: pytest.MonkeyPatch) -> None:
    """未指定间隔时读取 PHASETRACKER_PERIOD_INTERVAL，缺省为 600 秒。"""  # 测试说明。
    assert LoggingPhaseTracker(recording_log).period_interval == 600
    monkeypatch.setenv("PHASETRACKER_PERIOD_INTERVAL", "5")
    assert LoggingPhaseTracker(recording_log).period_interval == 5
    monkeypatch.setenv("PHASETRACKER_PERIOD_INTERVAL", "soon")
    with pytest.raises(ConfigError):
        LoggingPhaseTracker(recording_log)


def test_negative_interval_rejected(recording_log) -> None:
    with pytest.raises(ValueError):
        LoggingPhaseTracker(recording_log, -1)


@pytest.mark.parametrize("interval", [0.9, 1.5, "10", True])
def test_non_integer_interval_rejected(recording_log, interval) -> None:
    """间隔必须是整数秒，浮点数、字符串与布尔值都被拒绝。"""  # 测试说明。
    with pytest.raises(ValueError):
        LoggingPhaseTracker(recording_log, interval)


def test_works_with_stdlib_logger(caplog: pytest.LogCaptureFixture, manual_clock) -> None:
    """标准库 logging.Logger 同样可以作为报告输出目标。"""  # 测试说明。
    logger = logging.getLogger("phasetracker.test")
    caplog.set_level(logging.DEBUG, logger="phasetracker.test")
    tracker = LoggingPhaseTracker(logger, 600, phases=Phase, clock=manual_clock)
    tracker.stop()
    assert [record.getMessage() for record in caplog.records] == [
        "TIME/PHASE Final: A[nbrOfReports=0], B[nbrOfReports=0], C[nbrOfReports=0]"
    ]
    assert caplog.records[0].levelno == logging.DEBUG


def test_thread_safe_mode_keeps_windows_in_sync(recording_log) -> None:
    """线程安全模式下并发切换阶段，累计与周期统计保持一致。"""  # 测试说明。
    tracker = LoggingPhaseTracker(recording_log, 3_600, phases=Phase, thread_safe=True)
    errors: list[BaseException] = []

    def worker(phases) -> None:
        try:
            for _ in range(200):
                for phase in phases:
                    tracker.enter_phase(phase)
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(order,)) for order in ([Phase.A, Phase.B], [Phase.C, Phase.A], [Phase.B, Phase.C])]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    tracker.stop()
    assert errors == []
    assert _counts(tracker) == _counts(tracker, "windowed")
    assert sum(_counts(tracker).values()) >= 1


def test_null_tracker_accepts_everything() -> None:
    """空实现接受任意调用且不抛出异常。"""  # 测试说明。
    NULL_TRACKER.enter_phase(IndexPopulationPhase.SCAN)
    NULL_TRACKER.stop()
    NULL_TRACKER.enter_phase(IndexPopulationPhase.WRITE)


def test_tracker_members_are_documented() -> None:
    """追踪器的属性与方法都带有说明文档。"""  # 测试说明。
    members = [
        "entries", "current_phase", "state", "stopped", "period_interval",
        "enter_phase", "stop", "_log_current_time", "_final_report",
        "_period_report", "_main_report", "_window_report",
    ]
    assert [name for name in members if not getattr(LoggingPhaseTracker, name).__doc__] == []
