"""合并执行器。

在单个事务内执行合并决策：锁定记录、校验版本、更新主记录、
迁移依赖数据、删除重复记录。任何一步失败都会回滚整个事务。
"""

import logging
import time

from returns.result import Failure, Result, Success
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.deduplication.domain.errors import (
    InvalidMergeError,
    MergeError,
    MergeExecutionError,
    NotFoundError,
    StaleRecordError,
)
from src.deduplication.domain.merge_planner import validate_merge_data
from src.deduplication.domain.models import MergeDecision
from src.deduplication.infrastructure.repository import MergeRepository
from src.deduplication.logging_utils import get_deduplication_logger
from src.monitoring import metrics
from src.records.domain.models import EntityKind

logger = logging.getLogger(__name__)


class MergeExecutor:
    """合并执行器。

    合并失败以 Failure(MergeError) 返回；合并字段非法属于输入错误，
    在开始事务前直接抛出 ValidationError。
    """

    def __init__(
        self,
        session: AsyncSession,
        repository: MergeRepository | None = None,
    ) -> None:
        """初始化执行器。

        Args:
            session: 异步数据库会话，执行器负责提交或回滚
            repository: 合并仓库，默认基于 session 创建
        """
        self._session = session
        self._repository = repository or MergeRepository(session)
        self._events = get_deduplication_logger()

    async def execute(self, decision: MergeDecision) -> Result[str, MergeError]:
        """执行合并决策。

        Args:
            decision: 合并决策

        Returns:
            Success(主记录 ID) 或 Failure(MergeError)

        Raises:
            ValidationError: merged_data 包含未知字段或非法值
        """
        kind = decision.kind
        primary_id = decision.primary.id
        duplicate_ids = decision.duplicate_ids

        invalid = self._check_decision(decision)
        if invalid is not None:
            self._record_failure(kind, primary_id, duplicate_ids, invalid)
            return Failure(invalid)

        values = validate_merge_data(kind, decision.merged_data)

        start = time.perf_counter()
        try:
            await self._apply(decision, values)
            await self._session.commit()
            # 批量 UPDATE/DELETE 不同步会话，缓存的对象需要失效
            self._session.expire_all()
        except MergeError as e:
            await self._session.rollback()
            self._record_failure(kind, primary_id, duplicate_ids, e)
            return Failure(e)
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.error(f"合并事务失败: {kind.value} {primary_id} <- {duplicate_ids}: {e}")
            error = MergeExecutionError(
                f"合并失败，已回滚: {e}",
                primary_id=primary_id,
                duplicate_id=duplicate_ids[0] if len(duplicate_ids) == 1 else None,
            )
            self._record_failure(kind, primary_id, duplicate_ids, error)
            return Failure(error)
        except Exception:
            await self._session.rollback()
            logger.exception(f"合并时发生意外错误，已回滚: {kind.value} {primary_id} <- {duplicate_ids}")
            raise

        elapsed = time.perf_counter() - start
        metrics.merges_total.labels(kind=kind.value, result="merged").inc()
        metrics.merge_duration_seconds.labels(kind=kind.value).observe(elapsed)
        self._events.log_merge_completed(
            kind=kind.value,
            primary_id=primary_id,
            duplicate_ids=duplicate_ids,
            elapsed_ms=int(elapsed * 1000),
        )
        return Success(primary_id)

    @staticmethod
    def _check_decision(decision: MergeDecision) -> InvalidMergeError | None:
        primary = decision.primary
        seen: set[str] = set()
        for duplicate in decision.duplicates:
            if duplicate.id == primary.id:
                return InvalidMergeError(
                    "不能将记录合并到自身",
                    primary_id=primary.id,
                    duplicate_id=duplicate.id,
                )
            if duplicate.kind != decision.kind or primary.kind != decision.kind:
                return InvalidMergeError(
                    "合并的记录必须属于同一实体类型",
                    primary_id=primary.id,
                    duplicate_id=duplicate.id,
                )
            if duplicate.id in seen:
                return InvalidMergeError(
                    f"重复记录 {duplicate.id} 出现了多次",
                    primary_id=primary.id,
                    duplicate_id=duplicate.id,
                )
            seen.add(duplicate.id)
        return None

    async def _apply(self, decision: MergeDecision, values: dict) -> None:
        kind = decision.kind
        primary = decision.primary
        expected = {primary.id: primary.version}
        expected.update({d.id: d.version for d in decision.duplicates})

        # 1. 锁定并校验版本
        current = await self._repository.lock_records(kind, list(expected))
        if primary.id not in current:
            raise NotFoundError(f"主记录不存在: {primary.id}", primary_id=primary.id)
        for duplicate in decision.duplicates:
            if duplicate.id not in current:
                raise StaleRecordError(
                    f"重复记录已不存在，可能已被其他合并删除: {duplicate.id}",
                    primary_id=primary.id,
                    duplicate_id=duplicate.id,
                )
        for record_id, version in expected.items():
            if current[record_id] != version:
                raise StaleRecordError(
                    f"记录 {record_id} 已被修改（版本 {version} -> {current[record_id]}），请重新加载",
                    primary_id=primary.id,
                    duplicate_id=None if record_id == primary.id else record_id,
                )

        if kind == EntityKind.product and values.get("sku"):
            owner = await self._repository.find_sku_owner(values["sku"], list(expected))
            if owner is not None:
                raise InvalidMergeError(
                    f"SKU {values['sku']} 已被产品 {owner} 使用",
                    primary_id=primary.id,
                )

        # 2. 更新主记录
        if not await self._repository.update_if_version(
            kind, primary.id, primary.version, values
        ):
            raise StaleRecordError(
                f"主记录已被修改: {primary.id}", primary_id=primary.id
            )

        # 3. 迁移依赖数据，4. 删除重复记录
        for duplicate in decision.duplicates:
            moved = await self._repository.repoint_dependents(kind, duplicate.id, primary.id)
            logger.debug(f"{kind.value} {duplicate.id} -> {primary.id}: 迁移 {moved} 行依赖数据")
            if not await self._repository.delete_if_version(
                kind, duplicate.id, duplicate.version
            ):
                raise StaleRecordError(
                    f"重复记录已被修改或删除: {duplicate.id}",
                    primary_id=primary.id,
                    duplicate_id=duplicate.id,
                )

    def _record_failure(
        self,
        kind: EntityKind,
        primary_id: str,
        duplicate_ids: list[str],
        error: MergeError,
    ) -> None:
        metrics.merges_total.labels(kind=kind.value, result=error.code).inc()
        self._events.log_merge_failed(
            kind=kind.value,
            primary_id=primary_id,
            duplicate_ids=duplicate_ids,
            error_code=error.code,
            error_message=error.message,
        )
