"""提供日志与配置快照使用的文件写入工具。"""  # 模块说明。
from __future__ import annotations  # 启用延迟注解以兼容 Python 3.9 的联合类型写法。
# 导入 json 以支持 JSON 序列化。
import json
# 导入 os 模块以执行原子替换与强制落盘。
import os
# 导入 pathlib.Path 统一处理路径对象。
from pathlib import Path


# 定义安全创建目录的函数，确保重复调用也不会抛异常。
def safe_mkdirs(path: str | os.PathLike[str]) -> None:
    """创建目标目录及其父级目录，目录已存在时静默跳过。"""  # 函数说明。
    Path(path).mkdir(parents=True, exist_ok=True)


# 定义以原子方式写入文本的函数。
def atomic_write_text(path: str | os.PathLike[str], text: str) -> None:
    """通过临时文件写入文本内容，并以原子方式替换目标文件。"""  # 函数说明。
    target_path = Path(path)
    safe_mkdirs(target_path.parent)
    # 构造临时文件路径，追加 .tmp 后缀以便后续清理。
    tmp_path = target_path.with_name(f"{target_path.name}.tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_path, target_path)
    finally:
        # 如果临时文件仍然存在（替换失败），进行清理。
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


# 定义向文本文件追加一行的函数。
def append_line(path: str | os.PathLike[str], text: str, *, force_flush: bool = False) -> None:
    """以追加模式写入一行文本，可选地调用 fsync 强制落盘。"""  # 函数说明。
    target = Path(path)
    safe_mkdirs(target.parent)
    with target.open("a", encoding="utf-8") as handle:
        handle.write(text)
        handle.write("\n")
        handle.flush()
        if force_flush:
            os.fsync(handle.fileno())


# 定义追加 JSON 行到 JSONL 文件的函数。
def jsonl_append(path: str | os.PathLike[str], record: dict, *, force_flush: bool = False) -> None:
    """向 JSONL 文件追加一条记录。"""  # 函数说明。
    append_line(path, json.dumps(record, ensure_ascii=False, default=str), force_flush=force_flush)
