"""去重 API 路由。

为联系人、订单、产品提供重复扫描、批量查重、合并规划、合并和批量合并端点。
路径形如 /api/{collection}/duplicates，需在记录 CRUD 路由之前注册。
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from returns.result import Failure, Success
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.async_session import get_async_session
from src.deduplication.api.schemas import (
    BulkFindRequest,
    BulkMergeOutcomeResponse,
    BulkMergeRequest,
    BulkMergeResponse,
    Collection,
    DuplicatesResponse,
    ErrorResponse,
    MergePlanRequest,
    MergePlanResponse,
    MergeRequest,
    MergeResponse,
    snake_keys,
)
from src.deduplication.domain.errors import (
    DeduplicationError,
    InvalidMergeError,
    MergeExecutionError,
    NotFoundError,
    StaleRecordError,
    ValidationError,
)
from src.deduplication.services.deduplication_service import DeduplicationService
from src.records.api.schemas import ContactResponse, OrderResponse, ProductResponse
from src.records.domain.models import EntityKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["deduplication"])

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}

_STATUS_BY_ERROR: list[tuple[type[DeduplicationError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InvalidMergeError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StaleRecordError, status.HTTP_409_CONFLICT),
    (MergeExecutionError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]

_RESPONSE_BY_KIND = {
    EntityKind.contact: ContactResponse,
    EntityKind.order: OrderResponse,
    EntityKind.product: ProductResponse,
}


def _to_http_error(error: DeduplicationError) -> HTTPException:
    """把去重错误转换为带结构化 detail 的 HTTPException。"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(error, error_cls):
            status_code = code
            break

    detail = {"code": error.code, "message": error.message}
    primary_id = getattr(error, "primary_id", None)
    duplicate_id = getattr(error, "duplicate_id", None)
    if primary_id:
        detail["primaryId"] = primary_id
    if duplicate_id:
        detail["duplicateId"] = duplicate_id
    return HTTPException(status_code=status_code, detail=detail)


async def _get_deduplication_service(
    session: AsyncSession = Depends(get_async_session),
) -> DeduplicationService:
    """获取 DeduplicationService 实例。"""
    return DeduplicationService(session)


@router.get(
    "/{collection}/duplicates",
    response_model=DuplicatesResponse,
    responses=_ERROR_RESPONSES,
)
async def find_duplicates(
    collection: Collection,
    threshold: float | None = Query(None, description="相似度阈值 (0, 100]，默认 70"),
    service: DeduplicationService = Depends(_get_deduplication_service),
) -> DuplicatesResponse:
    """扫描集合中的全部记录，返回重复组。

    Args:
        collection: 记录集合（contacts、orders、products）
        threshold: 相似度阈值
        service: 去重服务

    Returns:
        DuplicatesResponse: 按得分降序排列的重复组

    Raises:
        HTTPException: 阈值非法（400）
    """
    try:
        result = await service.scan(collection.kind, threshold)
    except ValidationError as e:
        raise _to_http_error(e) from e
    return DuplicatesResponse.from_domain(result)


@router.post(
    "/{collection}/bulk-find-duplicates",
    response_model=DuplicatesResponse,
    responses=_ERROR_RESPONSES,
)
async def bulk_find_duplicates(
    collection: Collection,
    request: BulkFindRequest,
    service: DeduplicationService = Depends(_get_deduplication_service),
) -> DuplicatesResponse:
    """在指定记录中查找重复组。

    未发现重复时按顺序两两配对（matchType 为 manual），便于人工合并。
    """
    try:
        result = await service.bulk_find(
            collection.kind, request.record_ids, request.threshold
        )
    except ValidationError as e:
        raise _to_http_error(e) from e
    return DuplicatesResponse.from_domain(result)


@router.post(
    "/{collection}/merge/plan",
    response_model=MergePlanResponse,
    responses=_ERROR_RESPONSES,
)
async def plan_merge(
    collection: Collection,
    request: MergePlanRequest,
    service: DeduplicationService = Depends(_get_deduplication_service),
) -> MergePlanResponse:
    """计算合并后的字段值及其来源，不修改数据。"""
    try:
        decision = await service.plan_merge(
            collection.kind,
            request.primary_id,
            request.duplicate_id,
            overrides=snake_keys(request.overrides),
        )
    except DeduplicationError as e:
        raise _to_http_error(e) from e
    return MergePlanResponse.from_domain(decision)


@router.post(
    "/{collection}/merge",
    response_model=MergeResponse,
    responses=_ERROR_RESPONSES,
)
async def merge_records(
    collection: Collection,
    request: MergeRequest,
    service: DeduplicationService = Depends(_get_deduplication_service),
) -> MergeResponse:
    """把重复记录合并到主记录。

    依赖数据迁移到主记录后删除重复记录，整个过程在一个事务内完成。

    Raises:
        HTTPException: 请求非法（400）、主记录不存在（404）、
            记录已被并发修改（409）、数据库写入失败（500）
    """
    kind = collection.kind
    try:
        result = await service.merge(kind, request.to_domain())
    except ValidationError as e:
        raise _to_http_error(e) from e

    match result:
        case Success(merged):
            response_cls = _RESPONSE_BY_KIND[kind]
            return MergeResponse(
                primary_id=merged.id,
                merged_record=response_cls(**merged.model_dump()),
                message=f"已将 {request.duplicate_id} 合并到 {merged.id}",
            )
        case Failure(error):
            logger.warning(f"合并失败 [{error.code}]: {error.message}")
            raise _to_http_error(error)


@router.post(
    "/{collection}/bulk-merge",
    response_model=BulkMergeResponse,
    responses=_ERROR_RESPONSES,
)
async def bulk_merge_records(
    collection: Collection,
    request: BulkMergeRequest,
    service: DeduplicationService = Depends(_get_deduplication_service),
) -> BulkMergeResponse:
    """依次执行多个合并。

    单个记录对失败不会中断批量合并；失败的记录对在 remaining 中返回，可直接重试。
    """
    result = await service.bulk_merge(
        collection.kind, [m.to_domain() for m in request.merges]
    )
    return BulkMergeResponse(
        results=[BulkMergeOutcomeResponse.from_domain(o) for o in result.outcomes],
        merged_count=result.merged_count,
        failed_count=result.failed_count,
        remaining=[MergeRequest.from_domain(p) for p in result.remaining],
    )
