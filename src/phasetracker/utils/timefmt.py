"""纳秒时长的截断与人类可读格式化工具。"""  # 模块说明。

NANOS_PER_MICRO = 1_000
NANOS_PER_MILLI = 1_000_000
NANOS_PER_SECOND = 1_000_000_000

# 由大到小排列的时间单位，格式化时依次取整并扣减。
_UNITS = (
    ("d", 86_400 * NANOS_PER_SECOND),
    ("h", 3_600 * NANOS_PER_SECOND),
    ("m", 60 * NANOS_PER_SECOND),
    ("s", NANOS_PER_SECOND),
    ("ms", NANOS_PER_MILLI),
    ("μs", NANOS_PER_MICRO),
)


def truncate_to_millis(nanos: int) -> int:
    """去掉不足 1 毫秒的部分，返回仍以纳秒表示的时长。"""  # 函数说明。
    return (nanos // NANOS_PER_MILLI) * NANOS_PER_MILLI


def nanos_to_seconds(nanos: int) -> int:
    """将纳秒时长换算为整秒数（截断）。"""  # 函数说明。
    return nanos // NANOS_PER_SECOND


def nanos_to_string(nanos: int) -> str:
    """将纳秒时长渲染为 ``1h2m3s4ms`` 形式，跳过为零的单位。"""  # 函数说明。
    if nanos < 0:  # 仅接受非负时长。
        raise ValueError(f"Duration must be non-negative, got {nanos}")
    remaining = nanos  # 待分解的剩余纳秒数。
    parts: list[str] = []
    for suffix, size in _UNITS:  # 依次分解每个单位。
        amount, remaining = divmod(remaining, size)
        if amount > 0:
            parts.append(f"{amount}{suffix}")
    if remaining > 0 or not parts:  # 纳秒部分非零，或整体为零时输出 0ns。
        parts.append(f"{remaining}ns")
    return "".join(parts)
