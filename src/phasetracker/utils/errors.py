"""定义阶段追踪器使用的错误类型。"""  # 模块说明。


# 定义包级基础异常，便于调用方统一捕获。
class PhaseTrackerError(Exception):
    """阶段追踪相关错误的公共基类。"""  # 类说明。


# 定义停止后仍上报阶段的误用错误，属于调用方的编程错误。
class TrackerStoppedError(PhaseTrackerError, RuntimeError):
    """追踪器已停止后仍调用 enter_phase 时抛出，不应被静默忽略。"""  # 类说明。

    def __init__(self, message: str = "Trying to report a new phase after phase tracker has been stopped.") -> None:
        super().__init__(message)
