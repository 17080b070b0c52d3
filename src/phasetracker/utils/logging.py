"""提供结构化日志器，供追踪器输出报告行、供 CLI 输出运行信息。"""  # 模块文档说明。
from __future__ import annotations  # 启用延迟求值的注解语义以支持联合类型语法。

import json  # 导入 json 以在 JSONL 格式下序列化日志记录。
import sys  # 导入 sys 以访问标准输出流对象。
import traceback  # 导入 traceback 以在 exception 日志中附带堆栈。
from datetime import datetime, timezone  # 导入 datetime 以生成 UTC 时间戳。
from pathlib import Path  # 导入 Path 便于处理日志文件路径。
from typing import Any, Dict, Optional, TextIO

from phasetracker.utils.io import append_line, jsonl_append, safe_mkdirs  # 导入 I/O 工具用于追加写入。

_LEVELS = {  # 定义日志等级到数值的映射，兼容 logging 模块的约定。
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


def _normalize_level(level: str) -> str:
    """将外部传入的日志等级规范化为大写并验证合法性。"""  # 函数说明。
    upper = level.upper()
    if upper not in _LEVELS:  # 不支持的等级直接抛出异常。
        raise ValueError(f"Unsupported log level: {level}")
    return upper


class _LoggerCore:
    """封装日志格式化与写入细节的内部核心类。"""  # 类说明。

    def __init__(
        self,
        log_format: str,
        level: str,
        log_file: str | None,
        quiet: bool,
        *,
        force_flush: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        """初始化日志核心，保存格式、等级与输出目标。"""  # 方法说明。
        normalized = log_format.lower()
        if normalized not in {"human", "jsonl"}:  # 校验格式是否受支持。
            raise ValueError(f"Unsupported log format: {log_format}")
        self.format = normalized
        self.level = _LEVELS[_normalize_level(level)]  # 将等级转换为数值阈值。
        self.log_file = Path(log_file) if log_file else None
        self.quiet = quiet
        self._console = stream  # 为 None 时在写入时解析 sys.stdout，便于测试捕获。
        self._force_flush = force_flush
        if self.log_file is not None:  # 若需要写入文件则确保目录存在。
            safe_mkdirs(self.log_file.parent)

    def _timestamp(self) -> str:
        """返回带毫秒精度的 UTC ISO8601 时间戳。"""  # 方法说明。
        now = datetime.now(timezone.utc)
        return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def _render_human(self, record: Dict[str, Any]) -> str:
        """将日志记录渲染为人类易读的字符串。"""  # 方法说明。
        parts = [f"[{record['level']}]", record["ts"]]  # 等级标签与时间戳。
        for key, value in record.items():  # 附加上下文字段，错误相关字段单独成行。
            if key in {"ts", "level", "msg", "trace", "error", "error_type"}:
                continue
            parts.append(f"{key}={value}")
        parts.append(record["msg"])
        base = " ".join(parts)

        extra_lines: list[str] = []
        error_fields: list[str] = []
        if record.get("error_type"):
            error_fields.append(f"error_type={record['error_type']}")
        if record.get("error"):
            error_fields.append(f"error={record['error']}")
        if error_fields:
            extra_lines.append("    " + " ".join(error_fields))
        trace_text = record.get("trace")
        if isinstance(trace_text, str) and trace_text.strip():
            for line in trace_text.rstrip().splitlines():
                extra_lines.append("    " + line)
        if extra_lines:
            return "\n".join([base, *extra_lines])
        return base

    def emit(self, level: str, message: str, fields: Dict[str, Any]) -> None:
        """根据配置输出一条日志记录。"""  # 方法说明。
        normalized = _normalize_level(level)
        if _LEVELS[normalized] < self.level:  # 若日志级别低于阈值则直接丢弃。
            return
        record: Dict[str, Any] = {
            "ts": self._timestamp(),
            "level": normalized,
            "msg": message,
        }
        record.update(fields)  # 合并调用方提供的扩展字段。
        console = self._console or sys.stdout
        if self.format == "human":
            rendered = self._render_human(record)
            if not self.quiet:
                console.write(rendered + "\n")
                console.flush()
            if self.log_file is not None:
                append_line(self.log_file, rendered, force_flush=self._force_flush)
        else:  # JSONL 模式下直接写入结构化数据。
            if not self.quiet:
                console.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
                console.flush()
            if self.log_file is not None:
                jsonl_append(self.log_file, record, force_flush=self._force_flush)

    def human(self, record: Dict[str, Any]) -> str:
        """公开人类可读渲染方法，便于测试或复用。"""  # 方法说明。
        return self._render_human(record)


class StructuredLogger:
    """对外暴露的结构化日志器，支持上下文绑定与多格式输出。"""  # 类说明。

    def __init__(self, core: _LoggerCore, context: Optional[Dict[str, Any]] = None, parent: "StructuredLogger" | None = None) -> None:
        """创建日志器实例，可选地继承父级上下文。"""  # 方法说明。
        self._core = core
        self._context = context or {}
        self._parent = parent

    def _collect_context(self) -> Dict[str, Any]:
        """递归合并父级上下文并返回总上下文字典。"""  # 方法说明。
        aggregated: Dict[str, Any] = {}
        if self._parent is not None:
            aggregated.update(self._parent._collect_context())
        aggregated.update(self._context)
        return aggregated

    def bind(self, **kwargs: Any) -> "StructuredLogger":
        """基于当前实例追加上下文字段并返回新的子日志器。"""  # 方法说明。
        return StructuredLogger(self._core, context=kwargs, parent=self)

    def log(self, level: str, message: str, **fields: Any) -> None:
        """记录一条带指定等级的日志，可附带额外字段。"""  # 方法说明。
        payload = self._collect_context()
        payload.update(fields)
        self._core.emit(level, message, payload)

    def debug(self, message: str, **fields: Any) -> None:
        self.log("DEBUG", message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log("INFO", message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log("WARNING", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log("ERROR", message, **fields)

    def exception(self, message: str, exc: BaseException | None = None, **fields: Any) -> None:
        """输出包含异常堆栈的 ERROR 级日志。"""  # 方法说明。
        exception_obj = exc
        if exception_obj is None:
            _, exception_obj, _ = sys.exc_info()
        if exception_obj is not None:
            fields.setdefault("error", str(exception_obj))
            fields.setdefault("error_type", exception_obj.__class__.__name__)
            trace_text = "".join(
                traceback.format_exception(
                    exception_obj.__class__, exception_obj, exception_obj.__traceback__
                )
            )
            fields.setdefault("trace", trace_text)
        self.log("ERROR", message, **fields)

    def human(self, record: Dict[str, Any]) -> str:
        """委托核心生成 human 格式字符串。"""  # 方法说明。
        return self._core.human(record)


def get_logger(
    format: str = "human",
    level: str = "INFO",
    log_file: str | None = None,
    quiet: bool = False,
    *,
    force_flush: bool = False,
    stream: TextIO | None = None,
) -> StructuredLogger:
    """创建并返回结构化日志器，支持 human/jsonl 两种模式。"""  # 函数说明。
    core = _LoggerCore(format, level, log_file, quiet, force_flush=force_flush, stream=stream)
    return StructuredLogger(core)
