"""合并向导状态机测试。"""

import pytest

from src.deduplication.domain.errors import InvalidTransitionError, ValidationError
from src.deduplication.domain.models import DuplicateGroup
from src.deduplication.domain.wizard import MergeWizard, WizardState
from src.records.domain.models import EntityKind


@pytest.fixture
def groups(make_record) -> list[DuplicateGroup]:
    return [
        DuplicateGroup(
            id="contact-group-1",
            kind=EntityKind.contact,
            records=[make_record("c1", name="Jon"), make_record("c2", name="John")],
            match_type="name",
            similarity_score=86.0,
        ),
        DuplicateGroup(
            id="contact-group-2",
            kind=EntityKind.contact,
            records=[
                make_record("c3", email="a@x.com"),
                make_record("c4", email="a@x.com"),
                make_record("c5", email="a@x.com"),
            ],
            match_type="email",
            similarity_score=100.0,
        ),
        DuplicateGroup(
            id="product-group-1",
            kind=EntityKind.product,
            records=[
                make_record("p1", kind=EntityKind.product, name="Widget"),
                make_record("p2", kind=EntityKind.product, name="Widget"),
            ],
            match_type="name",
            similarity_score=100.0,
        ),
    ]


@pytest.fixture
def wizard(groups) -> MergeWizard:
    """已完成扫描、正在浏览重复组的向导。"""
    wizard = MergeWizard(EntityKind.contact)
    wizard.start_scan()
    wizard.scan_succeeded(groups)
    return wizard


def test_initial_state():
    wizard = MergeWizard(EntityKind.contact)

    assert wizard.state == WizardState.idle
    assert wizard.groups == []


def test_scan_keeps_only_own_kind(wizard):
    assert wizard.state == WizardState.listing_groups
    assert [g.id for g in wizard.groups] == ["contact-group-1", "contact-group-2"]


def test_select_group_defaults_to_first_record(wizard):
    wizard.select_group("contact-group-2")

    assert wizard.state == WizardState.reviewing_merge
    assert wizard.primary_id == "c3"


def test_full_merge_flow(wizard):
    wizard.select_group("contact-group-2", primary_id="c4", merged_data={"name": "Ann"})
    wizard.update_merged_field("phone", "555-0100")

    primary_id, duplicate_ids, merged_data = wizard.confirm_merge()

    assert wizard.state == WizardState.merging
    assert primary_id == "c4"
    assert duplicate_ids == ["c3", "c5"]
    assert merged_data == {"name": "Ann", "phone": "555-0100"}

    wizard.merge_succeeded()

    assert wizard.state == WizardState.listing_groups
    assert [g.id for g in wizard.groups] == ["contact-group-1"]
    assert wizard.selected_group is None


def test_merge_failure_keeps_other_groups_and_allows_retry(wizard):
    """合并失败时记录失败的组，其余扫描结果保持不变，重试回到审核。"""
    wizard.select_group("contact-group-1", merged_data={"name": "Jon"})
    wizard.confirm_merge()

    wizard.merge_failed("记录已被修改")

    assert wizard.state == WizardState.failed
    assert wizard.failed_group_id == "contact-group-1"
    assert len(wizard.groups) == 2

    wizard.retry()

    assert wizard.state == WizardState.reviewing_merge
    assert wizard.selected_group.id == "contact-group-1"
    assert wizard.merged_data == {"name": "Jon"}
    assert wizard.error is None


def test_scan_failure_retry_rescans():
    wizard = MergeWizard(EntityKind.order)
    wizard.start_scan()
    wizard.scan_failed("数据库不可用")

    assert wizard.state == WizardState.failed

    wizard.retry()

    assert wizard.state == WizardState.scanning


def test_cancel_review(wizard):
    wizard.select_group("contact-group-1")
    wizard.cancel_review()

    assert wizard.state == WizardState.listing_groups
    assert wizard.primary_id is None


def test_select_unknown_group(wizard):
    with pytest.raises(ValidationError):
        wizard.select_group("contact-group-9")


def test_select_primary_outside_group(wizard):
    with pytest.raises(ValidationError):
        wizard.select_group("contact-group-1", primary_id="c3")


def test_update_unknown_field(wizard):
    wizard.select_group("contact-group-1")

    with pytest.raises(ValidationError):
        wizard.update_merged_field("sku", "X")


@pytest.mark.parametrize(
    "action",
    ["scan_succeeded", "confirm_merge", "merge_succeeded", "retry", "cancel_review"],
)
def test_invalid_transitions_from_idle(action):
    wizard = MergeWizard(EntityKind.contact)
    method = getattr(wizard, action)

    with pytest.raises(InvalidTransitionError) as exc_info:
        if action == "scan_succeeded":
            method([])
        else:
            method()

    assert exc_info.value.state == "idle"
    assert exc_info.value.action == action
    assert wizard.state == WizardState.idle


def test_cannot_rescan_while_merging(wizard):
    wizard.select_group("contact-group-1")
    wizard.confirm_merge()

    with pytest.raises(InvalidTransitionError):
        wizard.start_scan()


def test_reset(wizard):
    wizard.select_group("contact-group-1")
    wizard.reset()

    assert wizard.state == WizardState.idle
    assert wizard.groups == []
    assert wizard.selected_group is None
