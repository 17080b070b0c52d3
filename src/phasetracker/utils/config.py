"""配置系统：分层加载、来源追踪、校验与快照导出工具集合。"""  # 模块说明。
from __future__ import annotations  # 启用前向注解以提升类型兼容性。

import copy  # 导入 copy 以执行深拷贝避免引用共享。
import os  # 导入 os 以访问环境变量。
from dataclasses import dataclass  # 导入 dataclass 以封装结果结构。
from pathlib import Path  # 导入 Path 统一路径处理。
from typing import Any, Dict, Iterable, Mapping  # 导入类型注解辅助代码可读性。

import yaml  # 导入 PyYAML 以读取/写出 YAML 文件。

from phasetracker.utils.io import atomic_write_text  # 复用原子写入工具以保存配置快照。

ENV_PREFIX = "PHASETRACKER_"  # 所有环境变量需以此前缀开头才会被解析。
PERIOD_INTERVAL_TOGGLE = ENV_PREFIX + "PERIOD_INTERVAL"  # 进程级周期间隔开关。
DEFAULT_PERIOD_INTERVAL = 600  # 未设置开关时的默认周期（秒）。
LOG_FORMATS = {"human", "jsonl"}  # 支持的日志格式。
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}  # 支持的日志等级。


@dataclass
class ConfigBundle:
    """封装配置加载结果，包含配置体与来源映射。"""  # 数据类说明。

    config: Dict[str, Any]  # 最终合并并经过规范化的配置字典。
    sources: Dict[str, Any]  # 与 config 对应的来源追踪树，叶子为字符串。


class ConfigError(ValueError):
    """对外统一的配置异常类型，包含来源链路信息。"""  # 自定义异常说明。


def _default_config_path() -> Path:
    """返回随包发布的默认配置文件路径。"""  # 工具函数说明。

    return Path(__file__).resolve().parents[1] / "data" / "default.yaml"  # config.py 位于 utils，上一级即包目录。


def _load_yaml(path: Path) -> Dict[str, Any]:
    """读取 YAML 文件并返回字典结构，若为空则返回空字典。"""  # 工具函数说明。

    with path.open("r", encoding="utf-8") as handle:  # 打开文件读取 UTF-8 文本。
        data = yaml.safe_load(handle)  # 使用 safe_load 避免执行任意代码。
    if data is None:
        return {}
    if not isinstance(data, dict):  # 顶层必须是映射。
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def _build_source_tree(node: Any, label: str) -> Any:
    """根据数据结构构造来源树，用于深度合并时携带来源信息。"""  # 工具函数说明。

    if isinstance(node, dict):  # 对字典逐键生成嵌套来源。
        return {key: _build_source_tree(value, label) for key, value in node.items()}
    return label  # 标量直接返回标签。


def _deep_merge(base: Dict[str, Any], incoming: Dict[str, Any], sources: Dict[str, Any], incoming_sources: Any) -> None:
    """递归地将 incoming 合并进 base，并同步更新来源信息。"""  # 工具函数说明。

    for key, value in incoming.items():  # 遍历待合并的键值对。
        source_info = incoming_sources.get(key) if isinstance(incoming_sources, dict) else incoming_sources
        if isinstance(value, dict):  # 若值为字典需要递归处理。
            base_child = base.get(key)
            source_child = sources.get(key)
            if not isinstance(base_child, dict):  # 若旧值不是字典则直接替换为新字典。
                base_child = {}
            if not isinstance(source_child, dict):
                source_child = {}
            base[key] = base_child
            sources[key] = source_child
            if isinstance(source_info, str):  # 若来源只是标签需扩展为整棵树。
                source_info = _build_source_tree(value, source_info)
            _deep_merge(base_child, value, source_child, source_info)
            continue
        if value is None and key in base and base[key] is not None:  # None 不会覆盖已有非空值。
            continue
        base[key] = copy.deepcopy(value)
        sources[key] = source_info  # 记录来源标签。


def _parse_scalar(value: str) -> Any:
    """将字符串尝试解析为布尔、整数或浮点类型，失败时返回原字符串。"""  # 工具函数说明。

    lowered = value.strip().lower()  # 预先裁剪并统一小写。
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered in {"null", "none"}:  # 支持 null/none 表达空值。
        return None
    try:
        return int(lowered)  # 优先尝试整数转换。
    except ValueError:
        try:
            return float(lowered)
        except ValueError:
            return value.strip()  # 均失败则返回去除首尾空格后的原字符串。


def _keypath_to_tree(keypath: Iterable[str], value: Any) -> Dict[str, Any]:
    """根据层级列表生成嵌套字典，用于 --set 与环境变量合并。"""  # 工具函数说明。

    result: Dict[str, Any] = {}
    cursor = result
    components = list(keypath)
    for index, part in enumerate(components):
        if index == len(components) - 1:  # 末尾键直接赋值。
            cursor[part] = value
        else:
            cursor = cursor.setdefault(part, {})  # 逐层创建嵌套字典。
    return result


def _collect_env_from_mapping(env: Mapping[str, str], source_prefix: str) -> tuple[Dict[str, Any], Dict[str, Any]]:
    """从映射中提取 PHASETRACKER_* 变量并构造值树与来源树。"""  # 工具函数说明。

    values: Dict[str, Any] = {}
    value_sources: Dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):  # 过滤非指定前缀。
            continue
        trimmed = key[len(ENV_PREFIX) :]
        path = [segment.lower() for segment in trimmed.split("__") if segment]  # 双下划线表示层级。
        if not path:
            continue
        tree = _keypath_to_tree(path, _parse_scalar(raw_value))
        source_tree = _keypath_to_tree(path, f"env:{source_prefix}{key}")
        _deep_merge(values, tree, value_sources, source_tree)
    return values, value_sources


def _parse_dotenv_file(path: Path) -> Dict[str, str]:
    """解析 .env 文件，仅返回键值对字典。"""  # 工具函数说明。

    result: Dict[str, str] = {}
    if not path.exists():  # 若文件不存在直接返回空字典。
        return result
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in stripped:  # 跳过空行、注释与错误格式。
                continue
            key, _, raw_value = stripped.partition("=")
            result[key.strip()] = raw_value.strip().strip("\"'")  # 去除周围空白与包裹的引号。
    return result


def _normalize_config(config: Dict[str, Any]) -> None:
    """对配置进行就地规范化，例如统一大小写。"""  # 工具函数说明。

    log_format = config.get("log_format")
    if isinstance(log_format, str):
        config["log_format"] = log_format.strip().lower()
    log_level = config.get("log_level")
    if isinstance(log_level, str):
        config["log_level"] = log_level.strip().upper()
    log_file = config.get("log_file")
    if isinstance(log_file, str):  # 空字符串视为未设置。
        config["log_file"] = os.path.expanduser(log_file.strip()) or None


def _source_for_path(path: Iterable[str], sources: Dict[str, Any]) -> str:
    """根据键路径在来源树中查找对应标签。"""  # 工具函数说明。

    cursor: Any = sources
    for part in path:
        if not isinstance(cursor, dict):
            return "unknown"
        cursor = cursor.get(part)
        if cursor is None:
            return "unknown"
    return cursor if isinstance(cursor, str) else "unknown"


def _assert_condition(condition: bool, path: Iterable[str], message: str, value: Any, sources: Dict[str, Any]) -> None:
    """若条件不成立则抛出包含来源信息的配置异常。"""  # 工具函数说明。

    if condition:
        return
    dotted = ".".join(path)
    origin = _source_for_path(path, sources)
    raise ConfigError(f"Invalid value for {dotted}: {message} (value={value!r}, source={origin})")


def _is_interval(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _validate_config(config: Dict[str, Any], sources: Dict[str, Any]) -> None:
    """执行语义校验，确保关键字段满足约束。"""  # 工具函数说明。

    period_interval = config.get("period_interval")
    _assert_condition(
        _is_interval(period_interval),
        ["period_interval"],
        "period_interval must be a non-negative integer (seconds)",
        period_interval,
        sources,
    )
    for key in ("thread_safe", "quiet", "force_flush"):  # 布尔开关。
        _assert_condition(isinstance(config.get(key), bool), [key], f"{key} must be true or false", config.get(key), sources)
    _assert_condition(
        config.get("log_format") in LOG_FORMATS,
        ["log_format"],
        "log_format must be one of {'human','jsonl'}",
        config.get("log_format"),
        sources,
    )
    _assert_condition(
        config.get("log_level") in LOG_LEVELS,
        ["log_level"],
        f"log_level must be one of {sorted(LOG_LEVELS)}",
        config.get("log_level"),
        sources,
    )


def default_period_interval(environ: Mapping[str, str] | None = None) -> int:
    """读取进程级开关 PHASETRACKER_PERIOD_INTERVAL，未设置时返回 600 秒。"""  # 公共函数说明。

    environ = os.environ if environ is None else environ
    raw = environ.get(PERIOD_INTERVAL_TOGGLE)
    if raw is None or not raw.strip():  # 未设置开关使用默认值。
        return DEFAULT_PERIOD_INTERVAL
    value = _parse_scalar(raw)
    if not _is_interval(value):
        raise ConfigError(
            f"Invalid value for {PERIOD_INTERVAL_TOGGLE}: must be a non-negative integer (value={raw!r})"
        )
    return value


def parse_cli_set_items(items: Iterable[str]) -> Dict[str, Any]:
    """将 --set KEY=VALUE 形式的列表解析为嵌套字典。"""  # 公共函数说明。

    overrides: Dict[str, Any] = {}
    for raw in items:
        if "=" not in raw:  # 若缺少等号则抛出错误提示。
            raise ConfigError(f"Invalid --set entry '{raw}', expected KEY=VALUE")
        key, value = raw.split("=", 1)  # 仅拆分首个等号以允许值中包含等号。
        path = [segment.strip().lower() for segment in key.split(".") if segment.strip()]  # 使用点分表示层级。
        if not path:
            continue
        tree = _keypath_to_tree(path, _parse_scalar(value))
        _deep_merge(overrides, tree, {}, tree)
    return overrides


def load_and_merge_config(
    cli_overrides: Dict[str, Any] | None = None,
    cli_set_overrides: Dict[str, Any] | None = None,
    config_path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ConfigBundle:
    """按照默认→用户→.env→环境→CLI→--set 顺序加载配置并返回结果。"""  # 主函数说明。

    default_path = _default_config_path()
    if not default_path.exists():  # 若默认文件缺失则立刻报错。
        raise FileNotFoundError(f"Default config not found: {default_path}")
    config = _load_yaml(default_path)  # 读取默认配置。
    sources = _build_source_tree(config, f"default:{default_path}")  # 初始化来源树。
    layers: list[tuple[Dict[str, Any], Any]] = []  # 依次待合并的 (值, 来源) 层。
    user_path = Path(config_path) if config_path else None
    if user_path is not None:
        if not user_path.exists():  # 显式指定的用户配置必须存在。
            raise ConfigError(f"Config file not found: {user_path}")
        user_config = _load_yaml(user_path)
        layers.append((user_config, f"user:{user_path}"))
        dotenv_path = user_path.parent / ".env"  # 用户配置同目录的 .env。
        env_map = _parse_dotenv_file(dotenv_path)
        if env_map:
            layers.append(_collect_env_from_mapping(env_map, f"{dotenv_path}:"))
    environ = os.environ if environ is None else environ
    layers.append(_collect_env_from_mapping(environ, ""))  # 真实环境变量。
    if cli_overrides:
        layers.append((cli_overrides, "cli:args"))
    if cli_set_overrides:
        layers.append((cli_set_overrides, "cli:set"))
    for values, source_tree in layers:  # 按顺序应用各层覆盖。
        if not values:
            continue
        _deep_merge(config, values, sources, source_tree)
    _normalize_config(config)
    _validate_config(config, sources)
    return ConfigBundle(config=config, sources=sources)


def render_effective_config(bundle: ConfigBundle, include_sources: bool = True) -> str:
    """将配置与来源以 YAML 文本渲染，可附带来源注释。"""  # 导出函数说明。

    def _render(node: Dict[str, Any], source_node: Any, indent: int) -> list[str]:
        lines: list[str] = []
        for key in sorted(node.keys()):  # 排序以稳定输出。
            value = node[key]
            child_source = source_node.get(key) if isinstance(source_node, dict) else source_node
            prefix = " " * indent
            if isinstance(value, dict):  # 嵌套字典需要递归渲染。
                lines.append(f"{prefix}{key}:")
                lines.extend(_render(value, child_source, indent + 2))
                continue
            rendered = yaml.safe_dump(value, default_flow_style=True).strip()
            if rendered.endswith("\n..."):  # safe_dump 对标量会追加文档结束标记。
                rendered = rendered[: -len("\n...")]
            line = f"{prefix}{key}: {rendered}"
            if include_sources and isinstance(child_source, str):
                line += f"  # {child_source}"
            lines.append(line)
        return lines

    return "\n".join(_render(bundle.config, bundle.sources, 0)) + "\n"


def save_config(bundle: ConfigBundle, path: str | os.PathLike[str], include_sources: bool = True) -> None:
    """将配置快照写入目标路径，使用原子写入避免半成品。"""  # 导出函数说明。

    atomic_write_text(path, render_effective_config(bundle, include_sources=include_sources))
