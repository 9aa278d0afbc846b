"""去重与合并错误类型。

每个错误带有稳定的 code，API 层据此映射 HTTP 状态码。
"""


class DeduplicationError(Exception):
    """去重流程错误基类。"""

    code = "deduplication_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DeduplicationError):
    """输入校验失败（阈值越界、字段非法等），在执行任何工作之前抛出。"""

    code = "validation_error"


class InvalidTransitionError(DeduplicationError):
    """合并向导状态机收到当前状态不允许的操作。"""

    code = "invalid_transition"

    def __init__(self, state: str, action: str) -> None:
        super().__init__(f"状态 {state} 下不允许执行 {action}")
        self.state = state
        self.action = action


class MergeError(DeduplicationError):
    """合并错误基类。

    Attributes:
        primary_id: 主记录 ID
        duplicate_id: 出错的重复记录 ID（如有）
    """

    code = "merge_error"

    def __init__(
        self,
        message: str,
        primary_id: str | None = None,
        duplicate_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.primary_id = primary_id
        self.duplicate_id = duplicate_id


class InvalidMergeError(MergeError):
    """合并请求本身不合法：自合并、类型不一致、SKU 冲突等。"""

    code = "invalid_merge"


class NotFoundError(MergeError):
    """主记录不存在。"""

    code = "not_found"


class StaleRecordError(MergeError):
    """记录在规划之后被修改或删除，需要重新加载后再合并。"""

    code = "stale_record"


class MergeExecutionError(MergeError):
    """数据库写入失败，事务已回滚。"""

    code = "merge_execution_failed"
