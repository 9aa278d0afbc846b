"""去重编排服务测试。"""

from datetime import date

import pytest
from returns.result import Failure, Success

from src.config import Settings
from src.deduplication.domain.errors import (
    InvalidMergeError,
    NotFoundError,
    StaleRecordError,
    ValidationError,
)
from src.deduplication.domain.models import MANUAL_MATCH, MergePair
from src.deduplication.services.deduplication_service import DeduplicationService
from src.records.domain.models import Contact, EntityKind, Order
from src.records.infrastructure.repository import RecordRepository


@pytest.fixture
def repo(async_session) -> RecordRepository:
    return RecordRepository(async_session)


@pytest.fixture
def service(async_session) -> DeduplicationService:
    return DeduplicationService(async_session, settings=Settings())


@pytest.fixture
async def contacts(async_session, repo):
    """c1、c2 邮箱相同；c3 与两者都不相似。"""
    created = [
        await repo.create(
            EntityKind.contact,
            {"name": "Alice Johnson", "email": "a@x.com", "phone": "555-0100"},
        ),
        await repo.create(
            EntityKind.contact,
            {"name": "Bob Carter", "email": "a@x.com", "phone": "212-9876", "city": "Springfield"},
        ),
        await repo.create(
            EntityKind.contact, {"name": "Zed Quinn", "email": "zed@example.org"}
        ),
    ]
    await async_session.commit()
    return created


class TestScan:
    """全量扫描测试。"""

    async def test_scan_finds_email_group(self, service, contacts):
        c1, c2, _ = contacts

        result = await service.scan(EntityKind.contact, threshold=70)

        assert result.total_records_checked == 3
        assert result.total_groups == 1
        assert result.total_duplicate_records == 2
        group = result.groups[0]
        assert set(group.record_ids) == {c1.id, c2.id}
        assert group.match_type == "email"
        assert result.warning is None

    async def test_scan_uses_default_threshold(self, service, contacts):
        result = await service.scan(EntityKind.contact)

        assert result.threshold == 70.0
        assert result.total_groups == 1

    async def test_scan_threshold_above_best_score(self, service, contacts):
        result = await service.scan(EntityKind.contact, threshold=95)

        assert result.groups == []

    @pytest.mark.parametrize("threshold", [0, -10, 101])
    async def test_scan_rejects_invalid_threshold(self, service, contacts, threshold):
        with pytest.raises(ValidationError):
            await service.scan(EntityKind.contact, threshold=threshold)

    async def test_scan_warns_when_limit_reached(self, async_session, contacts):
        service = DeduplicationService(
            async_session, settings=Settings(duplicate_scan_limit=2)
        )

        result = await service.scan(EntityKind.contact)

        assert result.total_records_checked == 2
        assert result.warning is not None

    async def test_scan_empty_collection(self, service):
        result = await service.scan(EntityKind.product)

        assert result.groups == []
        assert result.total_records_checked == 0


class TestBulkFind:
    """批量查重测试。"""

    async def test_empty_ids_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.bulk_find(EntityKind.contact, [])

    async def test_single_id(self, service, contacts):
        result = await service.bulk_find(EntityKind.contact, [contacts[0].id, contacts[0].id])

        assert result.groups == []
        assert result.message is not None

    async def test_real_duplicates_found(self, service, contacts):
        c1, c2, c3 = contacts

        result = await service.bulk_find(EntityKind.contact, [c3.id, c1.id, c2.id])

        assert [g.record_ids for g in result.groups] == [[c1.id, c2.id]]
        assert result.groups[0].match_type == "email"

    async def test_manual_pairing_when_no_duplicates(self, service, contacts):
        c1, _, c3 = contacts

        result = await service.bulk_find(EntityKind.contact, [c3.id, c1.id])

        assert len(result.groups) == 1
        assert result.groups[0].id == "manual-group-1"
        assert result.groups[0].match_type == MANUAL_MATCH
        assert result.groups[0].record_ids == [c3.id, c1.id]
        assert result.message is not None

    async def test_missing_ids_reported(self, service, contacts):
        c1, c2, _ = contacts

        result = await service.bulk_find(EntityKind.contact, [c1.id, "missing-1", c2.id])

        assert result.not_found_ids == ["missing-1"]
        assert result.warning is not None
        assert result.total_groups == 1

    async def test_not_enough_existing_records(self, service, contacts):
        result = await service.bulk_find(EntityKind.contact, [contacts[0].id, "missing-1"])

        assert result.groups == []
        assert result.not_found_ids == ["missing-1"]
        assert result.message is not None


class TestMerge:
    """合并测试。"""

    async def test_merge_returns_updated_primary(self, service, contacts):
        c1, c2, _ = contacts

        result = await service.merge(
            EntityKind.contact, MergePair(primary_id=c1.id, duplicate_id=c2.id)
        )

        assert isinstance(result, Success)
        merged = result.unwrap()
        assert isinstance(merged, Contact)
        assert merged.id == c1.id
        assert merged.city == "Springfield"
        assert merged.phone == "555-0100"
        assert merged.version == 2

    async def test_merged_data_overrides_plan(self, service, contacts):
        c1, c2, _ = contacts

        result = await service.merge(
            EntityKind.contact,
            MergePair(primary_id=c1.id, duplicate_id=c2.id, merged_data={"name": "Alice J."}),
        )

        assert result.unwrap().name == "Alice J."

    async def test_rescan_after_merge_does_not_return_duplicate(self, service, contacts):
        c1, c2, _ = contacts

        await service.merge(EntityKind.contact, MergePair(primary_id=c1.id, duplicate_id=c2.id))
        result = await service.scan(EntityKind.contact, threshold=10)

        ids = {rid for g in result.groups for rid in g.record_ids}
        assert c2.id not in ids
        assert result.total_records_checked == 2

    async def test_duplicate_already_merged(self, service, contacts):
        """重复记录已被另一次合并删除时返回 StaleRecordError。"""
        c1, c2, c3 = contacts

        first = await service.merge(
            EntityKind.contact, MergePair(primary_id=c1.id, duplicate_id=c2.id)
        )
        second = await service.merge(
            EntityKind.contact, MergePair(primary_id=c3.id, duplicate_id=c2.id)
        )

        assert isinstance(first, Success)
        assert isinstance(second, Failure)
        assert isinstance(second.failure(), StaleRecordError)

    async def test_missing_primary(self, service, contacts):
        result = await service.merge(
            EntityKind.contact, MergePair(primary_id="missing", duplicate_id=contacts[1].id)
        )

        assert isinstance(result.failure(), NotFoundError)

    async def test_self_merge(self, service, contacts):
        c1 = contacts[0]

        result = await service.merge(
            EntityKind.contact, MergePair(primary_id=c1.id, duplicate_id=c1.id)
        )

        assert isinstance(result.failure(), InvalidMergeError)

    async def test_outdated_client_version(self, service, contacts):
        """请求方看到的版本已过期时返回 StaleRecordError。"""
        c1, c2, _ = contacts

        result = await service.merge(
            EntityKind.contact,
            MergePair(primary_id=c1.id, duplicate_id=c2.id, primary_version=5),
        )

        assert isinstance(result.failure(), StaleRecordError)

    async def test_unknown_merged_field_raises(self, service, contacts):
        c1, c2, _ = contacts

        with pytest.raises(ValidationError):
            await service.merge(
                EntityKind.contact,
                MergePair(primary_id=c1.id, duplicate_id=c2.id, merged_data={"age": 3}),
            )

    async def test_order_merge_keeps_larger_total(self, async_session, repo, service, contacts):
        c1 = contacts[0]
        o1 = await repo.create_order(
            {"contact_id": c1.id, "total": 120.0, "order_date": date(2024, 3, 1)}, []
        )
        o2 = await repo.create_order(
            {"contact_id": c1.id, "total": 125.0, "order_date": date(2024, 3, 1)}, []
        )
        await async_session.commit()

        scan = await service.scan(EntityKind.order, threshold=70)
        assert set(scan.groups[0].record_ids) == {o1.id, o2.id}
        assert scan.groups[0].match_type == "multiple"

        result = await service.merge(
            EntityKind.order, MergePair(primary_id=o1.id, duplicate_id=o2.id)
        )

        merged = result.unwrap()
        assert isinstance(merged, Order)
        assert merged.total == 125.0


class TestPlanMerge:
    """合并规划测试。"""

    async def test_plan_does_not_write(self, service, repo, contacts):
        c1, c2, _ = contacts

        decision = await service.plan_merge(EntityKind.contact, c1.id, c2.id)

        assert decision.merged_data["city"] == "Springfield"
        assert decision.field_sources["city"] == f"duplicate:{c2.id}"
        assert (await repo.get_record(EntityKind.contact, c2.id)) is not None
        assert (await repo.get_record(EntityKind.contact, c1.id)).version == 1

    async def test_plan_missing_duplicate(self, service, contacts):
        with pytest.raises(NotFoundError):
            await service.plan_merge(EntityKind.contact, contacts[0].id, "missing")


class TestBulkMerge:
    """批量合并测试。"""

    async def test_failures_do_not_stop_batch(self, service, repo, contacts):
        c1, c2, c3 = contacts
        pairs = [
            MergePair(primary_id=c1.id, duplicate_id=c2.id),
            MergePair(primary_id=c3.id, duplicate_id=c2.id),
            MergePair(primary_id=c1.id, duplicate_id=c3.id, merged_data={"age": 3}),
            MergePair(primary_id=c1.id, duplicate_id=c3.id),
        ]

        result = await service.bulk_merge(EntityKind.contact, pairs)

        assert [o.status for o in result.outcomes] == ["merged", "failed", "failed", "merged"]
        assert result.outcomes[1].error_code == "stale_record"
        assert result.outcomes[2].error_code == "validation_error"
        assert result.merged_count == 2
        assert result.failed_count == 2
        assert result.remaining == [pairs[1], pairs[2]]

        # 同一主记录连续合并，每次都按最新版本规划
        primary = await repo.get_record(EntityKind.contact, c1.id)
        assert primary.version == 3
        assert await repo.count(EntityKind.contact) == 1
