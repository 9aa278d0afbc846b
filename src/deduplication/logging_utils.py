"""去重服务结构化日志工具。

提供结构化日志记录功能，包含上下文信息。
"""

import logging


class DeduplicationLogger:
    """去重服务结构化日志记录器。

    事件名写入 extra["event"]，便于日志系统按事件过滤。
    """

    def __init__(self, component: str = "service"):
        """初始化日志记录器。

        Args:
            component: 组件名称
        """
        self.component = component
        self._logger = logging.getLogger(f"src.deduplication.{component}")

    def log_scan_completed(
        self,
        kind: str,
        total_records: int,
        total_groups: int,
        threshold: float,
        elapsed_ms: int,
    ) -> None:
        """记录重复扫描完成事件。

        Args:
            kind: 实体类型
            total_records: 扫描记录数
            total_groups: 发现的重复组数
            threshold: 相似度阈值
            elapsed_ms: 耗时（毫秒）
        """
        self._logger.info(
            "重复扫描完成",
            extra={
                "event": "duplicate_scan_completed",
                "kind": kind,
                "total_records": total_records,
                "total_groups": total_groups,
                "threshold": threshold,
                "elapsed_ms": elapsed_ms,
            },
        )

    def log_bulk_find(
        self,
        kind: str,
        requested: int,
        found: int,
        not_found: int,
        total_groups: int,
        manual: bool,
    ) -> None:
        """记录批量查重事件。"""
        self._logger.info(
            "批量查重完成",
            extra={
                "event": "bulk_find_completed",
                "kind": kind,
                "requested": requested,
                "found": found,
                "not_found": not_found,
                "total_groups": total_groups,
                "manual_pairing": manual,
            },
        )

    def log_merge_completed(
        self,
        kind: str,
        primary_id: str,
        duplicate_ids: list[str],
        elapsed_ms: int,
    ) -> None:
        """记录合并成功事件。

        Args:
            kind: 实体类型
            primary_id: 主记录 ID
            duplicate_ids: 被合并删除的记录 ID
            elapsed_ms: 耗时（毫秒）
        """
        self._logger.info(
            "记录合并成功",
            extra={
                "event": "merge_completed",
                "kind": kind,
                "primary_id": primary_id,
                "duplicate_ids": duplicate_ids,
                "elapsed_ms": elapsed_ms,
            },
        )

    def log_merge_failed(
        self,
        kind: str,
        primary_id: str,
        duplicate_ids: list[str],
        error_code: str,
        error_message: str,
    ) -> None:
        """记录合并失败事件。

        Args:
            kind: 实体类型
            primary_id: 主记录 ID
            duplicate_ids: 重复记录 ID
            error_code: 错误码
            error_message: 错误信息
        """
        self._logger.warning(
            "记录合并失败",
            extra={
                "event": "merge_failed",
                "kind": kind,
                "primary_id": primary_id,
                "duplicate_ids": duplicate_ids,
                "error_code": error_code,
                "error_message": error_message,
            },
        )

    def log_bulk_merge_completed(
        self, kind: str, merged: int, failed: int
    ) -> None:
        self._logger.info(
            "批量合并完成",
            extra={
                "event": "bulk_merge_completed",
                "kind": kind,
                "merged": merged,
                "failed": failed,
            },
        )


# 全局日志记录器实例
_deduplication_logger = DeduplicationLogger()


def get_deduplication_logger() -> DeduplicationLogger:
    """获取去重服务日志记录器实例。

    Returns:
        DeduplicationLogger: 日志记录器实例
    """
    return _deduplication_logger
