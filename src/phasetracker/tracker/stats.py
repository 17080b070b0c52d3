"""阶段耗时的累计统计结构：单个统计记录与成对的阶段条目。"""  # 模块说明。
from __future__ import annotations  # 启用延迟注解以支持联合类型语法。

from dataclasses import dataclass, field  # 导入 dataclass 简化统计结构定义。

from phasetracker.utils.timefmt import nanos_to_string, truncate_to_millis  # 复用时长格式化工具。


@dataclass
class DurationStats:
    """记录某阶段在某个统计窗口内的总耗时、次数与极值（单位：纳秒）。"""  # 类说明。

    total_time: int = 0  # 已记录时长的总和。
    report_count: int = 0  # 已记录的次数。
    min_time: int | None = None  # 最小时长，未观测时为 None。
    max_time: int | None = None  # 最大时长，未观测时为 None。

    def log(self, duration: int) -> None:
        """累加一次阶段耗时，首次记录同时确定最小值与最大值。"""  # 方法说明。
        self.total_time += duration  # 累加总时长。
        self.report_count += 1  # 增加次数。
        self.max_time = duration if self.max_time is None else max(self.max_time, duration)
        self.min_time = duration if self.min_time is None else min(self.min_time, duration)

    def reset(self) -> None:
        """恢复到新建时的状态，供周期窗口在每次周期报告后清零。"""  # 方法说明。
        self.total_time = 0
        self.report_count = 0
        self.min_time = None
        self.max_time = None

    @property
    def avg_time(self) -> int | None:
        """平均耗时，向下取整；尚无记录时返回 None。"""  # 属性说明。
        if not self.report_count:  # 没有样本时无法计算平均值。
            return None
        return self.total_time // self.report_count  # 整数除法，不做四舍五入。

    def render(self, label: str) -> str:
        """渲染为 ``LABEL[totalTime=.., avgTime=.., minTime=.., maxTime=.., nbrOfReports=N]``。"""  # 方法说明。
        if self.report_count == 0:  # 未观测的阶段只输出次数。
            return f"{label}[nbrOfReports=0]"
        fields = [
            ("totalTime", self.total_time),
            ("avgTime", self.avg_time),
            ("minTime", self.min_time),
            ("maxTime", self.max_time),
        ]  # 字段顺序固定，保证输出稳定。
        parts = [f"{name}={nanos_to_string(truncate_to_millis(value))}" for name, value in fields]
        parts.append(f"nbrOfReports={self.report_count}")  # 次数放在最后。
        return f"{label}[{', '.join(parts)}]"


@dataclass
class PhaseEntry:
    """单个阶段的统计条目：累计统计永不清零，周期统计在每次周期报告后清零。"""  # 类说明。

    phase: object  # 所属阶段（封闭枚举成员）。
    cumulative: DurationStats = field(default_factory=DurationStats)  # 全生命周期统计。
    windowed: DurationStats = field(default_factory=DurationStats)  # 自上次周期报告以来的统计。

    def log(self, duration: int) -> None:
        """同一时长先写入累计统计，再写入周期统计。"""  # 方法说明。
        self.cumulative.log(duration)
        self.windowed.log(duration)

    @property
    def label(self) -> str:
        """阶段在报告中的显示名称。"""  # 属性说明。
        return getattr(self.phase, "name", str(self.phase))
