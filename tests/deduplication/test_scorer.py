"""相似度评分器单元测试。"""

from datetime import date

import pytest

from src.deduplication.domain.comparators import COMPARATORS, comparators_for
from src.deduplication.domain.errors import ValidationError
from src.deduplication.domain.models import MULTIPLE_MATCH, ScoringConfig
from src.deduplication.domain.scorer import SimilarityScorer, parse_date, parse_number
from src.records.domain.models import RECORD_FIELDS, EntityKind


@pytest.fixture
def scorer() -> SimilarityScorer:
    """创建使用默认参数的评分器。"""
    return SimilarityScorer()


class TestComparatorTable:
    """字段比较规则表测试。"""

    @pytest.mark.parametrize("kind", list(EntityKind))
    def test_every_kind_has_comparators(self, kind: EntityKind):
        """每种实体类型都有比较规则，且只引用该类型的字段。"""
        comparators = comparators_for(kind)

        assert comparators
        for comparator in comparators:
            assert set(comparator.sources) <= set(RECORD_FIELDS[kind])

    def test_identity_fields(self):
        """只有邮箱和 SKU 是身份字段。"""
        identity = {
            (kind, c.name) for kind, table in COMPARATORS.items() for c in table if c.identity
        }
        assert identity == {(EntityKind.contact, "email"), (EntityKind.product, "sku")}


class TestContactScoring:
    """联系人评分测试。"""

    def test_same_email_different_name_and_phone(self, scorer, make_record):
        """邮箱相同、姓名电话不同：只有 email 命中，总分不低于身份下限。"""
        a = make_record("c1", name="Alice Johnson", email="a@x.com", phone="555-0100")
        b = make_record("c2", name="Bob Carter", email="a@x.com", phone="212-9876")

        result = scorer.score(a, b)

        assert result.field_scores["email"] == 100.0
        assert result.matched_fields == ["email"]
        assert result.match_type == "email"
        assert result.score == 90.0

    def test_email_comparison_ignores_case_and_whitespace(self, scorer, make_record):
        """邮箱比较不区分大小写，忽略首尾空白。"""
        a = make_record("c1", email="A@X.com ")
        b = make_record("c2", email="a@x.COM")

        assert scorer.score(a, b).field_scores["email"] == 100.0

    def test_phone_comparison_uses_digits_only(self, scorer, make_record):
        """电话只比较数字部分。"""
        a = make_record("c1", phone="(555) 010-0000")
        b = make_record("c2", phone="555.010.0000")

        result = scorer.score(a, b)

        assert result.field_scores["phone"] == 100.0
        assert result.match_type == "phone"

    def test_fuzzy_name(self, scorer, make_record):
        """姓名按归一化编辑距离打分。"""
        a = make_record("c1", name="Jon Smith")
        b = make_record("c2", name="John Smith")

        # 编辑距离 1，较长字符串长度 10
        assert scorer.score(a, b).field_scores["name"] == 90.0

    def test_address_combines_street_and_city(self, scorer, make_record):
        """地址比较项由街道和城市拼接而成。"""
        a = make_record("c1", address="1 Main St", city="Springfield")
        b = make_record("c2", address="1 main st", city="springfield")

        assert scorer.score(a, b).field_scores["address"] == 100.0

    def test_multiple_matched_fields(self, scorer, make_record):
        """多个字段命中时匹配类型为 multiple。"""
        a = make_record("c1", name="Jon Smith", email="j@x.com")
        b = make_record("c2", name="John Smith", email="j@x.com")

        result = scorer.score(a, b)

        assert result.matched_fields == ["email", "name"]
        assert result.match_type == MULTIPLE_MATCH
        # (100 * 4 + 90 * 2) / 6
        assert result.score == 96.7

    def test_missing_fields_are_excluded(self, scorer, make_record):
        """任一侧缺失的字段不参与加权。"""
        a = make_record("c1", name="Maria Garcia", phone=None)
        b = make_record("c2", name="Maria Garcia", phone="555-0199")

        result = scorer.score(a, b)

        assert result.score == 100.0
        assert "phone" not in result.field_scores

    def test_no_comparable_fields_scores_zero(self, scorer, make_record):
        """没有共同字段时得分为 0，没有匹配类型。"""
        a = make_record("c1", name="Maria Garcia")
        b = make_record("c2", email="m@example.org")

        result = scorer.score(a, b)

        assert result.score == 0.0
        assert result.match_type is None

    def test_different_kinds_rejected(self, scorer, make_record):
        """不同类型的记录不能比较。"""
        a = make_record("c1", name="Widget")
        b = make_record("p1", kind=EntityKind.product, name="Widget")

        with pytest.raises(ValidationError):
            scorer.score(a, b)


class TestOrderScoring:
    """订单评分测试。"""

    def test_same_contact_and_date_close_totals(self, scorer, make_record):
        """同一联系人、同一天、金额 120 与 125。"""
        a = make_record(
            "o1", kind=EntityKind.order, contact_id="c1", status="pending",
            total=120.0, order_date=date(2024, 3, 1),
        )
        b = make_record(
            "o2", kind=EntityKind.order, contact_id="c1", status="pending",
            total=125.0, order_date=date(2024, 3, 1),
        )

        result = scorer.score(a, b)

        # 差异 4% -> 100 - 4 * 5
        assert result.field_scores["total"] == 80.0
        assert result.field_scores["order_date"] == 100.0
        assert result.match_type == MULTIPLE_MATCH
        # (100 * 3 + 80 * 2 + 100 * 2 + 100 * 1) / 8
        assert result.score == 95.0

    def test_date_decays_per_day(self, scorer, make_record):
        """日期每相差一天扣 10 分，最低为 0。"""
        a = make_record("o1", kind=EntityKind.order, order_date=date(2024, 3, 1))
        b = make_record("o2", kind=EntityKind.order, order_date="2024-03-04")
        c = make_record("o3", kind=EntityKind.order, order_date=date(2024, 6, 1))

        assert scorer.score(a, b).field_scores["order_date"] == 70.0
        assert scorer.score(a, c).field_scores["order_date"] == 0.0

    def test_malformed_total_is_ignored(self, scorer, make_record):
        """无法解析的金额视为缺失。"""
        a = make_record("o1", kind=EntityKind.order, contact_id="c1", total="n/a")
        b = make_record("o2", kind=EntityKind.order, contact_id="c1", total=50)

        result = scorer.score(a, b)

        assert "total" not in result.field_scores
        assert result.score == 100.0

    def test_zero_totals_are_identical(self, scorer, make_record):
        a = make_record("o1", kind=EntityKind.order, total=0)
        b = make_record("o2", kind=EntityKind.order, total=0.0)

        assert scorer.score(a, b).field_scores["total"] == 100.0


class TestProductScoring:
    """产品评分测试。"""

    def test_same_sku_case_insensitive(self, scorer, make_record):
        a = make_record("p1", kind=EntityKind.product, name="Widget", sku="WP-001")
        b = make_record("p2", kind=EntityKind.product, name="Gizmo", sku="wp-001")

        result = scorer.score(a, b)

        assert result.field_scores["sku"] == 100.0
        assert result.score >= 90.0

    def test_description_uses_token_order_insensitive_ratio(self, scorer, make_record):
        a = make_record("p1", kind=EntityKind.product, description="mono panel 300 watt")
        b = make_record("p2", kind=EntityKind.product, description="300 watt mono panel")

        assert scorer.score(a, b).field_scores["description"] == 100.0


class TestScoringProperties:
    """评分性质测试。"""

    def test_score_is_symmetric(self, scorer, make_record):
        """score(a, b) == score(b, a)。"""
        pairs = [
            (
                make_record("c1", name="Jon Smith", email="j@x.com", phone="555-0100"),
                make_record("c2", name="Johnny Smithers", email="J@x.com", phone="5550101"),
            ),
            (
                make_record("o1", kind=EntityKind.order, total=99.5, order_date=date(2024, 1, 2)),
                make_record("o2", kind=EntityKind.order, total=120, order_date=date(2024, 1, 5)),
            ),
            (
                make_record("p1", kind=EntityKind.product, name="Solar Panel", price=10),
                make_record("p2", kind=EntityKind.product, name="Panel Solar", price=12.5),
            ),
        ]

        for a, b in pairs:
            assert scorer.score(a, b) == scorer.score(b, a)

    def test_custom_config(self, make_record):
        """评分参数可配置。"""
        scorer = SimilarityScorer(ScoringConfig(identity_match_floor=95.0))
        a = make_record("c1", name="Alice", email="a@x.com")
        b = make_record("c2", name="Zed", email="a@x.com")

        assert scorer.score(a, b).score == 95.0


class TestParsers:
    """值解析函数测试。"""

    def test_parse_number(self):
        assert parse_number("12.5") == 12.5
        assert parse_number(3) == 3.0
        assert parse_number(None) is None
        assert parse_number(True) is None
        assert parse_number("abc") is None

    def test_parse_date(self):
        assert parse_date("2024-03-01T10:00:00Z") == date(2024, 3, 1)
        assert parse_date(date(2024, 3, 1)) == date(2024, 3, 1)
        assert parse_date("not a date") is None
        assert parse_date("") is None
