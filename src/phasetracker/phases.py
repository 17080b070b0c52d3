"""默认的阶段枚举：索引构建任务依次经历的执行阶段。"""  # 模块说明。
from enum import Enum  # 导入 Enum 定义封闭的阶段集合。


class IndexPopulationPhase(Enum):
    """索引构建流水线的阶段，声明顺序即报告中的输出顺序。"""  # 类说明。

    SCAN = "scan"  # 扫描存储并收集待索引条目。
    WRITE = "write"  # 将条目写入临时索引。
    MERGE = "merge"  # 合并临时分片。
    BUILD = "build"  # 构建最终索引结构。
    APPLY_EXTERNAL = "apply_external"  # 应用构建期间产生的外部更新。
    FLIP = "flip"  # 切换到新索引。

    def __str__(self) -> str:
        return self.name
