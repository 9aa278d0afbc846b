"""合并向导状态机。

描述"扫描 → 浏览重复组 → 审核合并 → 执行合并"的交互流程，
只允许显式定义的状态转换，非法操作抛出 InvalidTransitionError。
"""

from enum import Enum
from typing import Any

from src.deduplication.domain.errors import InvalidTransitionError, ValidationError
from src.deduplication.domain.models import DuplicateGroup
from src.records.domain.models import RECORD_FIELDS, EntityKind


class WizardState(str, Enum):
    """向导状态。"""

    idle = "idle"
    scanning = "scanning"
    listing_groups = "listing_groups"
    reviewing_merge = "reviewing_merge"
    merging = "merging"
    failed = "failed"


class MergeWizard:
    """合并向导。

    Attributes:
        kind: 实体类型
        state: 当前状态
        groups: 当前列出的重复组
        selected_group: 正在审核的组
        primary_id: 审核中选定的主记录
        merged_data: 审核中编辑的合并字段
        error: 最近一次失败的原因
        failed_group_id: 合并失败的组 ID（扫描失败时为 None）
    """

    def __init__(self, kind: EntityKind) -> None:
        self.kind = kind
        self.state = WizardState.idle
        self.groups: list[DuplicateGroup] = []
        self.selected_group: DuplicateGroup | None = None
        self.primary_id: str | None = None
        self.merged_data: dict[str, Any] = {}
        self.error: str | None = None
        self.failed_group_id: str | None = None

    def _require(self, action: str, *allowed: WizardState) -> None:
        if self.state not in allowed:
            raise InvalidTransitionError(self.state.value, action)

    def start_scan(self) -> None:
        self._require(
            "start_scan", WizardState.idle, WizardState.listing_groups, WizardState.failed
        )
        self._clear_review()
        self.error = None
        self.failed_group_id = None
        self.state = WizardState.scanning

    def scan_succeeded(self, groups: list[DuplicateGroup]) -> None:
        self._require("scan_succeeded", WizardState.scanning)
        self.groups = [g for g in groups if g.kind == self.kind]
        self.state = WizardState.listing_groups

    def scan_failed(self, error: str) -> None:
        self._require("scan_failed", WizardState.scanning)
        self.error = error
        self.failed_group_id = None
        self.state = WizardState.failed

    def select_group(
        self,
        group_id: str,
        primary_id: str | None = None,
        merged_data: dict[str, Any] | None = None,
    ) -> None:
        """选择一个重复组进入审核。

        Args:
            group_id: 组 ID
            primary_id: 主记录 ID，默认取组内第一条
            merged_data: 规划好的合并字段

        Raises:
            ValidationError: 组不存在或主记录不在组内
        """
        self._require("select_group", WizardState.listing_groups)
        group = self._find_group(group_id)
        if group is None:
            raise ValidationError(f"重复组不存在: {group_id}")

        primary_id = primary_id or group.records[0].id
        if primary_id not in group.record_ids:
            raise ValidationError(f"主记录 {primary_id} 不在重复组 {group_id} 中")

        self.selected_group = group
        self.primary_id = primary_id
        self.merged_data = dict(merged_data or {})
        self.state = WizardState.reviewing_merge

    def update_merged_field(self, name: str, value: Any) -> None:
        self._require("update_merged_field", WizardState.reviewing_merge)
        if name not in RECORD_FIELDS[self.kind]:
            raise ValidationError(f"{self.kind.value} 没有字段 {name}")
        self.merged_data[name] = value

    def cancel_review(self) -> None:
        self._require("cancel_review", WizardState.reviewing_merge)
        self._clear_review()
        self.state = WizardState.listing_groups

    def confirm_merge(self) -> tuple[str, list[str], dict[str, Any]]:
        """确认合并，进入执行状态。

        Returns:
            (主记录 ID, 重复记录 ID 列表, 合并字段)
        """
        self._require("confirm_merge", WizardState.reviewing_merge)
        self.state = WizardState.merging
        duplicate_ids = [
            rid for rid in self.selected_group.record_ids if rid != self.primary_id
        ]
        return self.primary_id, duplicate_ids, dict(self.merged_data)

    def merge_succeeded(self) -> None:
        """合并成功，从列表中移除该组。"""
        self._require("merge_succeeded", WizardState.merging)
        merged_id = self.selected_group.id
        self.groups = [g for g in self.groups if g.id != merged_id]
        self._clear_review()
        self.state = WizardState.listing_groups

    def merge_failed(self, error: str) -> None:
        """合并失败，记录失败的组，其余组保持不变。"""
        self._require("merge_failed", WizardState.merging)
        self.error = error
        self.failed_group_id = self.selected_group.id
        self.state = WizardState.failed

    def retry(self) -> None:
        """从失败状态重试：扫描失败重新扫描，合并失败回到审核。"""
        self._require("retry", WizardState.failed)
        self.error = None
        if self.failed_group_id is None:
            self.state = WizardState.scanning
            return
        self.failed_group_id = None
        self.state = WizardState.reviewing_merge

    def reset(self) -> None:
        self.groups = []
        self._clear_review()
        self.error = None
        self.failed_group_id = None
        self.state = WizardState.idle

    def _find_group(self, group_id: str) -> DuplicateGroup | None:
        return next((g for g in self.groups if g.id == group_id), None)

    def _clear_review(self) -> None:
        self.selected_group = None
        self.primary_id = None
        self.merged_data = {}
