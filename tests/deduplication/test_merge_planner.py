"""合并规划器单元测试。"""

from datetime import date

import pytest

from src.deduplication.domain.errors import InvalidMergeError, ValidationError
from src.deduplication.domain.merge_planner import MergePlanner, validate_merge_data
from src.deduplication.domain.models import DuplicateGroup, MergePolicy
from src.records.domain.models import EntityKind


@pytest.fixture
def planner() -> MergePlanner:
    return MergePlanner()


@pytest.fixture
def orders(make_record):
    """同一联系人、金额 120 与 125、日期相差一天的两个订单。"""
    primary = make_record(
        "o1", kind=EntityKind.order, contact_id="c1", status="pending",
        total=120.0, order_date=date(2024, 3, 1), notes=None,
    )
    duplicate = make_record(
        "o2", kind=EntityKind.order, contact_id="c1", status="shipped",
        total=125.0, order_date=date(2024, 3, 2), notes="gift wrap",
    )
    return primary, duplicate


class TestPlanMerge:
    """单条重复记录合并规划测试。"""

    def test_contact_prefers_primary_non_empty_values(self, planner, make_record):
        primary = make_record("c1", name="Jon Smith", email="j@x.com", phone="", city=None)
        duplicate = make_record(
            "c2", name="John Smith", email="john@x.com", phone="555-0100", city="Springfield"
        )

        decision = planner.plan_merge(primary, duplicate)

        assert decision.primary.id == "c1"
        assert decision.duplicate_ids == ["c2"]
        assert decision.merged_data["name"] == "Jon Smith"
        assert decision.merged_data["email"] == "j@x.com"
        assert decision.merged_data["phone"] == "555-0100"
        assert decision.merged_data["city"] == "Springfield"
        assert decision.field_sources["name"] == "primary"
        assert decision.field_sources["phone"] == "duplicate:c2"

    def test_order_total_and_date(self, planner, orders):
        """订单金额取较大值，日期取较新值，状态保留主记录。"""
        primary, duplicate = orders

        decision = planner.plan_merge(primary, duplicate)

        assert decision.merged_data["total"] == 125.0
        assert decision.merged_data["order_date"] == date(2024, 3, 2)
        assert decision.merged_data["status"] == "pending"
        assert decision.merged_data["notes"] == "gift wrap"
        assert decision.field_sources["total"] == "duplicate:o2"
        assert decision.field_sources["status"] == "primary"

    def test_order_policy_can_prefer_primary(self, orders):
        """关闭取大/取新策略后，金额和日期保留主记录。"""
        primary, duplicate = orders
        planner = MergePlanner(
            MergePolicy(prefer_larger_total=False, prefer_recent_date=False)
        )

        decision = planner.plan_merge(primary, duplicate)

        assert decision.merged_data["total"] == 120.0
        assert decision.merged_data["order_date"] == date(2024, 3, 1)

    def test_equal_totals_keep_primary_source(self, planner, make_record):
        primary = make_record("o1", kind=EntityKind.order, status="pending", total=50)
        duplicate = make_record("o2", kind=EntityKind.order, status="pending", total=50.0)

        decision = planner.plan_merge(primary, duplicate)

        assert decision.field_sources["total"] == "primary"

    def test_product_zero_price_falls_back(self, planner, make_record):
        primary = make_record(
            "p1", kind=EntityKind.product, name="Widget", price=0,
            is_active=False, category_id="cat-a",
        )
        duplicate = make_record(
            "p2", kind=EntityKind.product, name="Widget", price=19.99,
            is_active=True, category_id="cat-b", sku="W-1",
        )

        decision = planner.plan_merge(primary, duplicate)

        assert decision.merged_data["price"] == 19.99
        assert decision.merged_data["sku"] == "W-1"
        assert decision.merged_data["is_active"] is False
        assert decision.merged_data["category_id"] == "cat-a"

    def test_overrides_win(self, planner, orders):
        primary, duplicate = orders

        decision = planner.plan_merge(primary, duplicate, overrides={"status": "shipped"})

        assert decision.merged_data["status"] == "shipped"
        assert decision.field_sources["status"] == "override"

    def test_override_values_are_converted(self, planner, orders):
        primary, duplicate = orders

        decision = planner.plan_merge(
            primary, duplicate, overrides={"order_date": "2024-04-01", "total": "130.5"}
        )

        assert decision.merged_data["order_date"] == date(2024, 4, 1)
        assert decision.merged_data["total"] == 130.5

    def test_unknown_override_rejected(self, planner, orders):
        primary, duplicate = orders

        with pytest.raises(ValidationError, match="color"):
            planner.plan_merge(primary, duplicate, overrides={"color": "red"})

    def test_invalid_override_value_rejected(self, planner, orders):
        primary, duplicate = orders

        with pytest.raises(ValidationError):
            planner.plan_merge(primary, duplicate, overrides={"total": -1})

    def test_required_field_cannot_be_cleared(self, planner, make_record):
        primary = make_record("c1", name="Jon Smith")
        duplicate = make_record("c2", name="John Smith")

        with pytest.raises(ValidationError):
            planner.plan_merge(primary, duplicate, overrides={"name": None})

    def test_self_merge_rejected(self, planner, make_record):
        record = make_record("c1", name="Jon Smith")

        with pytest.raises(InvalidMergeError) as exc_info:
            planner.plan_merge(record, record)

        assert exc_info.value.primary_id == "c1"
        assert exc_info.value.duplicate_id == "c1"

    def test_kind_mismatch_rejected(self, planner, make_record):
        contact = make_record("c1", name="Widget")
        product = make_record("p1", kind=EntityKind.product, name="Widget", price=1, is_active=True)

        with pytest.raises(InvalidMergeError):
            planner.plan_merge(contact, product)


class TestPlanGroupMerge:
    """整组合并规划测试。"""

    def _group(self, make_record) -> DuplicateGroup:
        return DuplicateGroup(
            id="contact-group-1",
            kind=EntityKind.contact,
            records=[
                make_record("c1", name="Jon Smith"),
                make_record("c2", name="John Smith", phone="555-0100"),
                make_record("c3", name="Jonny Smith", zip="12345"),
            ],
            match_type="name",
            similarity_score=90.0,
        )

    def test_group_merge_uses_all_other_members(self, planner, make_record):
        decision = planner.plan_group_merge(self._group(make_record), primary_id="c2")

        assert decision.primary.id == "c2"
        assert decision.duplicate_ids == ["c1", "c3"]
        assert decision.merged_data["name"] == "John Smith"
        assert decision.merged_data["zip"] == "12345"
        assert decision.field_sources["zip"] == "duplicate:c3"

    def test_primary_must_belong_to_group(self, planner, make_record):
        with pytest.raises(ValidationError):
            planner.plan_group_merge(self._group(make_record), primary_id="c9")


class TestValidateMergeData:
    """合并字段校验测试。"""

    def test_returns_only_supplied_fields(self):
        assert validate_merge_data(EntityKind.contact, {"phone": "555"}) == {"phone": "555"}

    def test_unknown_field(self):
        with pytest.raises(ValidationError):
            validate_merge_data(EntityKind.product, {"weight": 3})

    def test_nullable_field_accepts_none(self):
        assert validate_merge_data(EntityKind.product, {"sku": None}) == {"sku": None}
