"""命令行入口：按模拟时钟回放阶段轨迹，离线查看报告节奏与格式。"""  # 模块说明。
from __future__ import annotations

import argparse  # 导入 argparse 以解析命令行参数。
import json  # 导入 json 以读取 JSONL 轨迹。
import math  # 导入 math 以检查秒数是否有限。
import sys  # 导入 sys 以支持通过 python -m 调用。
from enum import Enum  # 导入 Enum 以根据 --phases 构造封闭阶段集合。
from pathlib import Path  # 导入 Path 以读取轨迹文件。
from typing import Any, Dict, List, Type

import yaml  # 导入 PyYAML 以读取 YAML 轨迹。

from phasetracker.phases import IndexPopulationPhase  # 默认阶段枚举。
from phasetracker.tracker import LoggingPhaseTracker  # 待回放的追踪器。
from phasetracker.utils.config import (  # 导入配置工具以支持分层加载与快照。
    ConfigError,
    load_and_merge_config,
    parse_cli_set_items,
    render_effective_config,
    save_config,
)
from phasetracker.utils.errors import PhaseTrackerError  # 包级错误基类。
from phasetracker.utils.logging import get_logger  # 导入日志工具创建结构化日志器。
from phasetracker.utils.timefmt import NANOS_PER_SECOND  # 秒到纳秒的换算常量。


class TraceError(PhaseTrackerError):
    """轨迹文件格式错误或包含未知阶段时抛出。"""  # 类说明。


class SimulatedClock:
    """只在回放时手动推进的单调时钟，读数单位为纳秒。"""  # 类说明。

    def __init__(self, start: int = 0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        """将时钟向前推进指定秒数，不允许倒退。"""  # 方法说明。
        if seconds < 0:
            raise TraceError(f"Step duration must be non-negative, got {seconds}")
        try:
            self.now += int(round(seconds * NANOS_PER_SECOND))
        except OverflowError:  # 换算成纳秒后超出浮点范围。
            raise TraceError(f"Step duration is too large: {seconds}") from None


def parse_bool(value: str) -> bool:
    """将传入值解析为布尔类型，仅接受 true/false。"""  # 函数说明。

    if isinstance(value, bool):
        return value
    normalized = value.lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise argparse.ArgumentTypeError("Expected 'true' or 'false'")


def build_parser() -> argparse.ArgumentParser:
    """创建参数解析器并声明所有可用选项。"""  # 函数说明。

    parser = argparse.ArgumentParser(
        prog="phasetracker",
        description="Replay a phase trace through a logging phase tracker",
    )
    parser.add_argument("trace", nargs="?", default=None, help="YAML 或 JSONL 轨迹文件，每步包含 phase 与 seconds")
    parser.add_argument("--config", default=None, help="可选用户配置 YAML 路径")
    parser.add_argument(
        "--set",
        dest="set_items",
        action="append",
        default=[],
        help="通过 KEY=VALUE 覆盖任意配置，可重复使用",
    )
    parser.add_argument(
        "--print-config",
        type=parse_bool,
        default="false",
        help="打印最终配置快照后退出 (true/false)",
    )
    parser.add_argument("--save-config", default=None, help="保存最终配置快照到指定路径后退出")
    parser.add_argument("--period-interval", type=int, default=None, help="周期报告间隔（秒）")
    parser.add_argument(
        "--phases",
        default=None,
        help="逗号分隔的阶段名称列表，替代默认的索引构建阶段",
    )
    parser.add_argument("--log-format", choices=["human", "jsonl"], default=None, help="日志格式")
    parser.add_argument("--log-level", default=None, help="日志等级（DEBUG/INFO/WARNING/ERROR）")
    parser.add_argument("--log-file", default=None, help="可选日志文件路径，追加写入")
    parser.add_argument("--quiet", type=parse_bool, default=None, help="静默模式，控制台不输出日志 (true/false)")
    parser.add_argument("--force-flush", action="store_true", help="每条日志写入文件后立即 fsync")
    return parser


def _build_cli_overrides(args: argparse.Namespace) -> dict:
    """根据解析结果构造 CLI 覆盖字典，仅包含显式传入的键。"""  # 工具函数说明。

    overrides: dict[str, object] = {}
    if args.period_interval is not None:
        overrides["period_interval"] = args.period_interval
    if args.log_format is not None:
        overrides["log_format"] = args.log_format
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if args.log_file is not None:
        overrides["log_file"] = args.log_file
    if args.quiet is not None:
        overrides["quiet"] = args.quiet
    if args.force_flush:
        overrides["force_flush"] = True
    return overrides


def build_phase_enum(names: str | None) -> Type[Enum]:
    """根据逗号分隔的名称构造阶段枚举，未提供时返回默认枚举。"""  # 函数说明。

    if not names:
        return IndexPopulationPhase
    members = [name.strip().upper() for name in names.split(",") if name.strip()]
    if not members:
        raise TraceError("--phases must name at least one phase")
    if len(set(members)) != len(members):
        raise TraceError(f"--phases contains duplicate names: {names}")
    return Enum("Phase", members)  # type: ignore[return-value]


def load_trace(path: str | Path) -> List[Dict[str, Any]]:
    """读取轨迹文件，返回 ``{"phase": str, "seconds": float}`` 列表。"""  # 函数说明。

    trace_path = Path(path)
    if not trace_path.exists():
        raise TraceError(f"Trace file not found: {trace_path}")
    text = trace_path.read_text(encoding="utf-8")
    if trace_path.suffix.lower() == ".jsonl":  # JSONL 每行一个步骤。
        steps: Any = [json.loads(line) for line in text.splitlines() if line.strip()]
    else:
        steps = yaml.safe_load(text) or []
        if isinstance(steps, dict):  # 允许顶层使用 steps 键包裹。
            steps = steps.get("steps", [])
    if not isinstance(steps, list):
        raise TraceError(f"Trace {trace_path} must be a list of steps")
    normalized: List[Dict[str, Any]] = []
    for index, step in enumerate(steps):
        if not isinstance(step, dict) or "phase" not in step:
            raise TraceError(f"Step {index} in {trace_path} must be a mapping with a 'phase' key")
        seconds = step.get("seconds", 0)
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            raise TraceError(f"Step {index} in {trace_path} has non-numeric seconds: {seconds!r}")
        try:
            seconds = float(seconds)
        except OverflowError:  # 超出浮点范围的整数字面量。
            raise TraceError(f"Step {index} in {trace_path} has out-of-range seconds") from None
        if not math.isfinite(seconds) or seconds < 0:
            raise TraceError(f"Step {index} in {trace_path} must have finite non-negative seconds, got {seconds!r}")
        normalized.append({"phase": str(step["phase"]).strip().upper(), "seconds": seconds})
    return normalized


def replay(steps: List[Dict[str, Any]], tracker: LoggingPhaseTracker, clock: SimulatedClock, phase_enum: Type[Enum]) -> None:
    """依次进入每个阶段并推进模拟时钟，最后停止追踪器。"""  # 函数说明。

    for index, step in enumerate(steps):
        try:
            phase = phase_enum[step["phase"]]
        except KeyError:
            known = ", ".join(member.name for member in phase_enum)
            raise TraceError(f"Step {index} names unknown phase '{step['phase']}' (known: {known})") from None
        tracker.enter_phase(phase)
        clock.advance(step["seconds"])
    tracker.stop()


def main(argv: list[str] | None = None) -> int:
    """解析参数并回放轨迹，返回退出状态码。"""  # 函数说明。

    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        bundle = load_and_merge_config(
            cli_overrides=_build_cli_overrides(args),
            cli_set_overrides=parse_cli_set_items(args.set_items) if args.set_items else {},
            config_path=args.config,
        )
    except ConfigError as exc:
        parser.error(str(exc))
    config = bundle.config
    if args.print_config:  # 若用户请求打印配置。
        sys.stdout.write("effective config snapshot:\n" + render_effective_config(bundle, include_sources=True))
        sys.stdout.flush()
        if args.save_config:
            save_config(bundle, args.save_config)
        return 0
    if args.save_config:
        save_config(bundle, args.save_config)
        return 0
    if args.trace is None:
        parser.error("a trace file is required unless --print-config or --save-config is given")
    logger = get_logger(
        format=config["log_format"],
        level=config["log_level"],
        log_file=config.get("log_file"),
        quiet=config["quiet"],
        force_flush=config["force_flush"],
    )
    try:
        phase_enum = build_phase_enum(args.phases)
        steps = load_trace(args.trace)
        clock = SimulatedClock()
        tracker = LoggingPhaseTracker(
            logger.bind(component="tracker"),
            config["period_interval"],
            phases=phase_enum,
            clock=clock,
            thread_safe=config["thread_safe"],
        )
        logger.info("replaying trace", trace_file=args.trace, steps=len(steps), period_interval=tracker.period_interval)
        replay(steps, tracker, clock, phase_enum)
        return 0
    except (PhaseTrackerError, ValueError, yaml.YAMLError) as exc:
        logger.exception("replay failed", exc=exc)
        return 1


if __name__ == "__main__":  # 允许脚本直接运行。
    sys.exit(main())
