"""去重编排服务。

协调重复扫描、批量查重、合并规划和合并执行，记录指标与结构化日志。
"""

import logging
import time

from returns.result import Failure, Result, Success
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.deduplication.domain.detectors import (
    DuplicateDetector,
    manual_pairing,
    validate_threshold,
)
from src.deduplication.domain.errors import (
    InvalidMergeError,
    MergeError,
    NotFoundError,
    StaleRecordError,
    ValidationError,
)
from src.deduplication.domain.merge_planner import MergePlanner
from src.deduplication.domain.models import (
    BulkMergeOutcome,
    BulkMergeResult,
    MergeDecision,
    MergePair,
    MergePolicy,
    ScanResult,
    ScoringConfig,
)
from src.deduplication.domain.scorer import SimilarityScorer
from src.deduplication.logging_utils import get_deduplication_logger
from src.deduplication.services.merge_executor import MergeExecutor
from src.monitoring import metrics
from src.records.domain.models import Contact, EntityKind, Order, Product
from src.records.infrastructure.repository import RecordRepository

logger = logging.getLogger(__name__)


class DeduplicationService:
    """去重编排服务。

    扫描是只读的；合并通过 MergeExecutor 在独立事务中执行。
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        repository: RecordRepository | None = None,
        executor: MergeExecutor | None = None,
    ) -> None:
        """初始化去重服务。

        Args:
            session: 异步数据库会话
            settings: 应用配置（为 None 时使用全局配置）
            repository: 记录仓库
            executor: 合并执行器
        """
        self._settings = settings or get_settings()
        self._records = repository or RecordRepository(session)
        self._executor = executor or MergeExecutor(session)
        self._detector = DuplicateDetector(
            SimilarityScorer(ScoringConfig.from_settings(self._settings))
        )
        self._planner = MergePlanner(MergePolicy.from_settings(self._settings))
        self._events = get_deduplication_logger()

    def _resolve_threshold(self, threshold: float | None) -> float:
        if threshold is None:
            threshold = self._settings.duplicate_default_threshold
        return validate_threshold(threshold)

    async def scan(self, kind: EntityKind, threshold: float | None = None) -> ScanResult:
        """扫描某一实体类型的全部记录，查找重复组。

        Args:
            kind: 实体类型
            threshold: 相似度阈值（为 None 时使用配置的默认值）

        Returns:
            ScanResult: 扫描结果

        Raises:
            ValidationError: 阈值非法
        """
        threshold = self._resolve_threshold(threshold)
        start_time = time.time()

        limit = self._settings.duplicate_scan_limit
        records = await self._records.load_records(kind, limit=limit)
        groups = self._detector.find_duplicate_groups(records, threshold)

        warning = None
        if len(records) >= limit:
            warning = f"记录数达到扫描上限，只检查了最早的 {limit} 条记录"
            logger.warning(f"{kind.value} 重复扫描达到上限 {limit}")

        elapsed = time.time() - start_time
        metrics.duplicate_scans_total.labels(kind=kind.value, mode="scan").inc()
        metrics.duplicate_groups_found_total.labels(kind=kind.value).inc(len(groups))
        metrics.duplicate_scan_duration_seconds.labels(kind=kind.value).observe(elapsed)
        self._events.log_scan_completed(
            kind=kind.value,
            total_records=len(records),
            total_groups=len(groups),
            threshold=threshold,
            elapsed_ms=int(elapsed * 1000),
        )

        return ScanResult(
            kind=kind,
            threshold=threshold,
            groups=groups,
            total_records_checked=len(records),
            warning=warning,
        )

    async def bulk_find(
        self,
        kind: EntityKind,
        record_ids: list[str],
        threshold: float | None = None,
    ) -> ScanResult:
        """在指定记录中查找重复组。

        没有发现重复时按顺序两两配对，方便用户逐对人工合并。

        Args:
            kind: 实体类型
            record_ids: 记录 ID 列表
            threshold: 相似度阈值

        Returns:
            ScanResult: 查重结果，包含不存在的 ID 和提示信息

        Raises:
            ValidationError: ID 列表为空或阈值非法
        """
        if not record_ids:
            raise ValidationError("recordIds 不能为空")
        threshold = self._resolve_threshold(threshold)

        unique_ids = list(dict.fromkeys(record_ids))
        if len(unique_ids) < 2:
            return ScanResult(
                kind=kind,
                threshold=threshold,
                total_records_checked=len(unique_ids),
                message="至少需要 2 条记录才能查找重复",
            )

        found, not_found = await self._records.get_records(kind, unique_ids)
        warning = None
        if not_found:
            warning = f"{len(not_found)} 条记录不存在: {', '.join(not_found)}"
            logger.warning(f"批量查重 {kind.value}: {warning}")

        if len(found) < 2:
            return ScanResult(
                kind=kind,
                threshold=threshold,
                total_records_checked=len(found),
                not_found_ids=not_found,
                warning=warning,
                message="存在的记录不足 2 条，无法查找重复",
            )

        groups = self._detector.find_duplicate_groups(found, threshold)
        manual = not groups
        if manual:
            groups = manual_pairing(found)
            message = f"在 {len(found)} 条记录中未发现重复，已按顺序配对供人工合并"
        else:
            message = f"在 {len(found)} 条记录中发现 {len(groups)} 组重复"

        metrics.duplicate_scans_total.labels(kind=kind.value, mode="bulk").inc()
        if not manual:
            metrics.duplicate_groups_found_total.labels(kind=kind.value).inc(len(groups))
        self._events.log_bulk_find(
            kind=kind.value,
            requested=len(unique_ids),
            found=len(found),
            not_found=len(not_found),
            total_groups=len(groups),
            manual=manual,
        )

        return ScanResult(
            kind=kind,
            threshold=threshold,
            groups=groups,
            total_records_checked=len(found),
            not_found_ids=not_found,
            warning=warning,
            message=message,
        )

    async def plan_merge(
        self,
        kind: EntityKind,
        primary_id: str,
        duplicate_id: str,
        overrides: dict | None = None,
    ) -> MergeDecision:
        """规划合并，不写入数据库。

        Raises:
            InvalidMergeError: 自合并
            NotFoundError: 主记录或重复记录不存在
            ValidationError: 覆盖值非法
        """
        pair = MergePair(
            primary_id=primary_id, duplicate_id=duplicate_id, merged_data=overrides
        )
        return await self._build_decision(kind, pair, missing_duplicate=NotFoundError)

    async def merge(
        self, kind: EntityKind, pair: MergePair
    ) -> Result[Contact | Order | Product, MergeError]:
        """合并两条记录。

        请求中带有版本号时，以请求方看到的版本为准检测并发修改。

        Args:
            kind: 实体类型
            pair: 合并请求

        Returns:
            Success(合并后的主记录) 或 Failure(MergeError)

        Raises:
            ValidationError: 合并字段非法
        """
        try:
            decision = await self._build_decision(
                kind, pair, missing_duplicate=StaleRecordError
            )
        except MergeError as e:
            metrics.merges_total.labels(kind=kind.value, result=e.code).inc()
            self._events.log_merge_failed(
                kind=kind.value,
                primary_id=pair.primary_id,
                duplicate_ids=[pair.duplicate_id],
                error_code=e.code,
                error_message=e.message,
            )
            return Failure(e)

        result = await self._executor.execute(decision)
        match result:
            case Success(primary_id):
                merged = await self._records.get(kind, primary_id, refresh=True)
                return Success(merged)
            case Failure(_):
                return result

    async def bulk_merge(self, kind: EntityKind, pairs: list[MergePair]) -> BulkMergeResult:
        """依次合并多个记录对。

        每一对在执行前按当前数据重新规划；某一对失败不影响其余记录对，
        失败的记录对放入 remaining 供调用方重试。
        """
        result = BulkMergeResult()
        for pair in pairs:
            try:
                merge_result = await self.merge(kind, pair)
            except ValidationError as e:
                merge_result = Failure(e)

            match merge_result:
                case Success(_):
                    result.outcomes.append(
                        BulkMergeOutcome(
                            primary_id=pair.primary_id,
                            duplicate_id=pair.duplicate_id,
                            status="merged",
                        )
                    )
                case Failure(error):
                    result.outcomes.append(
                        BulkMergeOutcome(
                            primary_id=pair.primary_id,
                            duplicate_id=pair.duplicate_id,
                            status="failed",
                            error_code=error.code,
                            message=error.message,
                        )
                    )
                    result.remaining.append(pair)

        self._events.log_bulk_merge_completed(
            kind=kind.value,
            merged=result.merged_count,
            failed=result.failed_count,
        )
        return result

    async def _build_decision(
        self,
        kind: EntityKind,
        pair: MergePair,
        missing_duplicate: type[MergeError],
    ) -> MergeDecision:
        if pair.primary_id == pair.duplicate_id:
            raise InvalidMergeError(
                "不能将记录合并到自身",
                primary_id=pair.primary_id,
                duplicate_id=pair.duplicate_id,
            )

        primary = await self._records.get_record(kind, pair.primary_id)
        if primary is None:
            raise NotFoundError(
                f"主记录不存在: {pair.primary_id}", primary_id=pair.primary_id
            )
        duplicate = await self._records.get_record(kind, pair.duplicate_id)
        if duplicate is None:
            raise missing_duplicate(
                f"重复记录不存在: {pair.duplicate_id}",
                primary_id=pair.primary_id,
                duplicate_id=pair.duplicate_id,
            )

        if pair.primary_version is not None:
            primary = primary.model_copy(update={"version": pair.primary_version})
        if pair.duplicate_version is not None:
            duplicate = duplicate.model_copy(update={"version": pair.duplicate_version})

        return self._planner.plan_merge(primary, duplicate, overrides=pair.merged_data)
