"""阶段追踪器：记录阶段切换、聚合耗时并按周期与结束时输出报告。"""  # 模块说明。
from __future__ import annotations  # 启用延迟注解以支持联合类型语法。

import contextlib  # 导入 contextlib 以在非线程安全模式下提供空上下文。
import threading  # 导入 threading 以在需要时串行化公共操作。
import time  # 导入 time 使用单调时钟。
from abc import ABC, abstractmethod  # 导入抽象基类工具定义追踪器接口。
from enum import Enum  # 导入 Enum 定义状态机。
from types import MappingProxyType  # 导入只读映射以对外暴露统计条目。
from typing import Any, Callable, Iterable, Mapping

from phasetracker.phases import IndexPopulationPhase  # 默认的阶段枚举。
from phasetracker.tracker.stats import PhaseEntry  # 每个阶段的统计条目。
from phasetracker.utils.config import default_period_interval  # 读取周期间隔开关。
from phasetracker.utils.errors import TrackerStoppedError  # 停止后误用的错误类型。
from phasetracker.utils.timefmt import nanos_to_seconds  # 纳秒换算整秒。

MESSAGE_PREFIX = "TIME/PHASE "  # 所有报告行的固定前缀。


class TrackerState(Enum):
    """追踪器状态机：空闲 → 处于某阶段 → 已停止（终态）。"""  # 类说明。

    IDLE = "idle"
    IN_PHASE = "in_phase"
    STOPPED = "stopped"


class PhaseTracker(ABC):
    """宿主流程用来上报阶段切换的接口。"""  # 类说明。

    @abstractmethod
    def enter_phase(self, phase: Any) -> None:
        """通知追踪器流程进入了给定阶段。"""  # 方法说明。

    @abstractmethod
    def stop(self) -> None:
        """通知追踪器流程结束。"""  # 方法说明。


class NullPhaseTracker(PhaseTracker):
    """不做任何记录的追踪器，用于关闭耗时报告的场景。"""  # 类说明。

    def enter_phase(self, phase: Any) -> None:
        """忽略阶段切换。"""  # 方法说明。

    def stop(self) -> None:
        """忽略停止通知。"""  # 方法说明。


NULL_TRACKER = NullPhaseTracker()  # 共享的空实现实例。


class LoggingPhaseTracker(PhaseTracker):
    """按阶段累计耗时，并通过日志器输出周期报告与最终报告。

    周期检查只在 ``enter_phase`` 调用时顺带进行，没有后台定时器：
    宿主长时间不切换阶段时不会产生周期报告。
    """

    def __init__(
        self,
        log: Any,
        period_interval: int | None = None,
        *,
        phases: Iterable[Any] = IndexPopulationPhase,
        clock: Callable[[], int] = time.monotonic_ns,
        thread_safe: bool = False,
    ) -> None:
        """创建追踪器；``log`` 只需提供 ``debug(message)`` 方法。"""  # 方法说明。
        if period_interval is None:  # 未显式指定时读取进程级开关。
            period_interval = default_period_interval()
        if isinstance(period_interval, bool) or not isinstance(period_interval, int):
            raise ValueError(f"period_interval must be a whole number of seconds, got {period_interval!r}")
        if period_interval < 0:
            raise ValueError(f"period_interval must be >= 0, got {period_interval}")
        self.log = log  # 保存日志输出目标。
        self._period_interval = period_interval  # 周期报告间隔（秒）。
        self._clock = clock  # 返回纳秒的单调时钟。
        self._entries: dict[Any, PhaseEntry] = {phase: PhaseEntry(phase) for phase in phases}  # 按声明顺序建立条目。
        self._state = TrackerState.IDLE  # 初始为空闲状态。
        self._current_phase: Any = None  # 当前所处阶段。
        self._phase_entered_at = 0  # 进入当前阶段时的时钟读数。
        self._last_period_report: int | None = None  # 上次周期报告的时钟读数，首次切换前未设置。
        self._guard = threading.Lock() if thread_safe else contextlib.nullcontext()  # 线程安全模式下的全局锁。

    @property
    def entries(self) -> Mapping[Any, PhaseEntry]:
        """阶段到统计条目的只读映射，顺序与阶段声明顺序一致。"""  # 属性说明。
        return MappingProxyType(self._entries)

    @property
    def current_phase(self) -> Any:
        """当前所处阶段，空闲或停止时为 None。"""  # 属性说明。
        return self._current_phase

    @property
    def state(self) -> TrackerState:
        """当前状态机状态。"""  # 属性说明。
        return self._state

    @property
    def stopped(self) -> bool:
        """是否已经调用过 stop。"""  # 属性说明。
        return self._state is TrackerState.STOPPED

    @property
    def period_interval(self) -> int:
        """周期报告间隔（整秒）。"""  # 属性说明。
        return self._period_interval

    def enter_phase(self, phase: Any) -> None:
        """记录阶段切换；重复上报当前阶段不产生任何效果。"""  # 方法说明。
        with self._guard:
            if self._state is TrackerState.STOPPED:  # 停止后再切换属于调用方误用。
                raise TrackerStoppedError()
            if phase not in self._entries:  # 阶段必须属于封闭集合。
                raise ValueError(f"Unknown phase: {phase!r}")
            if self._state is TrackerState.IN_PHASE and phase == self._current_phase:
                return  # 同一阶段重复上报，不重复计数也不重置计时。
            now = self._log_current_time()  # 结算上一阶段的耗时。
            self._current_phase = phase
            self._phase_entered_at = now
            self._state = TrackerState.IN_PHASE
            if self._last_period_report is None:  # 首次切换只建立基准，不因时钟值触发报告。
                self._last_period_report = now
            seconds_since_last_report = nanos_to_seconds(now - self._last_period_report)
            if seconds_since_last_report >= self._period_interval:
                self._period_report(seconds_since_last_report)
                self._last_period_report = now

    def stop(self) -> None:
        """结算当前阶段并输出最终报告；重复调用为空操作。"""  # 方法说明。
        with self._guard:
            if self._state is TrackerState.STOPPED:
                return
            self._log_current_time()
            self._current_phase = None
            self._state = TrackerState.STOPPED
            self._final_report()

    def _log_current_time(self) -> int:
        """读取时钟，若处于某阶段则把已经过的时长记入该阶段。"""  # 方法说明。
        now = self._clock()
        if self._state is TrackerState.IN_PHASE:
            self._entries[self._current_phase].log(now - self._phase_entered_at)
        return now

    def _final_report(self) -> None:
        """输出只含累计统计的最终报告。"""  # 方法说明。
        self.log.debug(MESSAGE_PREFIX + self._main_report("Final"))

    def _period_report(self, seconds_since_last_report: int) -> None:
        """输出累计统计与周期窗口统计，并清零窗口。"""  # 方法说明。
        # 累计部分必须先于窗口部分渲染。
        main_report = self._main_report("Total")
        period_report = self._window_report(seconds_since_last_report)
        self.log.debug(MESSAGE_PREFIX + main_report + ", " + period_report)

    def _main_report(self, title: str) -> str:
        """按声明顺序渲染每个阶段的累计统计。"""  # 方法说明。
        rendered = ", ".join(entry.cumulative.render(entry.label) for entry in self._entries.values())
        return f"{title}: {rendered}"

    def _window_report(self, seconds_since_last_report: int) -> str:
        """渲染每个阶段的窗口统计，渲染后立即清零。"""  # 方法说明。
        parts = []  # 收集各阶段的窗口片段。
        for entry in self._entries.values():
            parts.append(entry.windowed.render(entry.label))
            entry.windowed.reset()  # 周期报告后清零窗口统计。
        return f"Last {seconds_since_last_report} sec: " + ", ".join(parts)
