"""Tests for coupon applicability rules and their precedence."""

import pytest

from backoffice.models.coupon import Coupon
from backoffice.services.coupon_applicability import (
    ExactPairs,
    LegacyApplicablePlans,
    LegacyIds,
    PlanCrossDays,
    PlanGrant,
    PlanVariant,
    RestrictionRequired,
    UpgradeOnly,
    derive_applicability,
    is_applicable,
    resolve,
)


def build_coupon(coupon_type="percentage", **fields):
    """Build an unsaved coupon with empty applicability lists."""
    values = {
        "code": "TEST",
        "name": "Test coupon",
        "coupon_type": coupon_type,
        "valid_plan_variants": [],
        "valid_plan_codes": [],
        "valid_variant_days": [],
        "valid_plan_ids": [],
        "valid_upgrade_ids": [],
        "applicable_plans": [],
    }
    values.update(fields)
    return Coupon(**values)


class TestPlanVariant:
    def test_from_document_uppercases_plan_code(self):
        variant = PlanVariant.from_document({"planCode": "premium", "variantDays": "30"})
        assert variant == PlanVariant("PREMIUM", 30)

    def test_to_document(self):
        assert PlanVariant("GOLD", 15).to_document() == {"planCode": "GOLD", "variantDays": 15}

    def test_hashable_for_set_membership(self):
        pairs = {PlanVariant("GOLD", 15), PlanVariant("GOLD", 15)}
        assert len(pairs) == 1


class TestDeriveApplicability:
    def test_plan_assignment_is_plan_grant(self):
        coupon = build_coupon("plan_assignment", plan_code="gold", variant_days=15)
        assert derive_applicability(coupon) == PlanGrant(plan_code="GOLD", variant_days=15)

    def test_plan_variants_take_precedence(self):
        coupon = build_coupon(
            valid_plan_variants=[{"planCode": "PREMIUM", "variantDays": 30}],
            valid_plan_codes=["BASIC"],
            valid_plan_ids=["abc123"],
            valid_upgrade_ids=["HIGHLIGHT"],
        )
        rule = derive_applicability(coupon)
        assert isinstance(rule, ExactPairs)
        assert rule.pairs == frozenset({PlanVariant("PREMIUM", 30)})

    def test_plan_codes_before_plan_ids(self):
        coupon = build_coupon(
            valid_plan_codes=["silver"],
            valid_variant_days=[7, 30],
            valid_plan_ids=["abc123"],
            valid_upgrade_ids=["BUMP"],
        )
        rule = derive_applicability(coupon)
        assert rule == PlanCrossDays(
            plan_codes=frozenset({"SILVER"}),
            variant_days=frozenset({7, 30}),
            upgrade_ids=frozenset({"BUMP"}),
        )

    def test_plan_ids_before_upgrades(self):
        coupon = build_coupon(valid_plan_ids=["abc123-30"], valid_upgrade_ids=["BUMP"])
        rule = derive_applicability(coupon)
        assert rule == LegacyIds(plan_ids=("abc123-30",), upgrade_ids=frozenset({"BUMP"}))

    def test_upgrades_only(self):
        coupon = build_coupon("fixed_amount", valid_upgrade_ids=["BUMP"])
        assert derive_applicability(coupon) == UpgradeOnly(upgrade_ids=frozenset({"BUMP"}))

    def test_discount_without_lists_requires_restriction(self):
        assert isinstance(derive_applicability(build_coupon()), RestrictionRequired)
        assert isinstance(derive_applicability(build_coupon("fixed_amount")), RestrictionRequired)

    def test_discount_ignores_applicable_plans(self):
        coupon = build_coupon(applicable_plans=["GOLD"])
        assert isinstance(derive_applicability(coupon), RestrictionRequired)

    def test_other_types_use_applicable_plans(self):
        coupon = build_coupon("free_trial", applicable_plans=["gold"])
        assert derive_applicability(coupon) == LegacyApplicablePlans(
            plan_codes=frozenset({"GOLD"})
        )

    def test_null_lists_treated_as_empty(self):
        coupon = build_coupon(
            valid_plan_variants=None,
            valid_plan_codes=None,
            valid_plan_ids=None,
            valid_upgrade_ids=None,
        )
        assert isinstance(derive_applicability(coupon), RestrictionRequired)


class TestResolveExactPairs:
    @pytest.fixture
    def coupon(self):
        return build_coupon(
            valid_plan_variants=[
                {"planCode": "PREMIUM", "variantDays": 30},
                {"planCode": "BASIC", "variantDays": 7},
            ],
            valid_plan_codes=["GOLD"],
            valid_upgrade_ids=["BUMP"],
        )

    def test_listed_pair_matches(self, coupon):
        assert resolve(coupon, "PREMIUM", 30)
        assert resolve(coupon, "basic", 7)

    def test_plan_code_case_insensitive(self, coupon):
        assert resolve(coupon, " premium ", 30)

    def test_other_days_rejected(self, coupon):
        assert not resolve(coupon, "PREMIUM", 7)

    def test_days_required(self, coupon):
        assert not resolve(coupon, "PREMIUM")

    def test_lower_precedence_fields_ignored(self, coupon):
        assert not resolve(coupon, "GOLD", 30)
        assert not resolve(coupon, upgrade_id="BUMP")


class TestResolvePlanCrossDays:
    def test_plan_and_days_must_both_match(self):
        coupon = build_coupon(valid_plan_codes=["SILVER"], valid_variant_days=[30])
        assert resolve(coupon, "SILVER", 30)
        assert not resolve(coupon, "SILVER", 7)
        assert not resolve(coupon, "GOLD", 30)

    def test_days_required_when_listed(self):
        coupon = build_coupon(valid_plan_codes=["SILVER"], valid_variant_days=[30])
        assert not resolve(coupon, "SILVER")

    def test_any_variant_when_no_days(self):
        coupon = build_coupon(valid_plan_codes=["SILVER"])
        assert resolve(coupon, "SILVER")
        assert resolve(coupon, "SILVER", 90)

    def test_upgrade_fallback(self):
        coupon = build_coupon(valid_plan_codes=["SILVER"], valid_upgrade_ids=["BUMP"])
        assert resolve(coupon, upgrade_id="BUMP")
        assert not resolve(coupon, upgrade_id="TOP")


class TestResolveLegacyIds:
    def test_plan_id_matches_case_insensitively(self):
        coupon = build_coupon(valid_plan_ids=["Gold"])
        assert resolve(coupon, "GOLD")
        assert resolve(coupon, "gold", 30)

    def test_unlisted_plan_rejected(self):
        coupon = build_coupon(valid_plan_ids=["GOLD"])
        assert not resolve(coupon, "SILVER")

    def test_plan_miss_falls_back_to_upgrades(self):
        coupon = build_coupon(valid_plan_ids=["GOLD"], valid_upgrade_ids=["BUMP"])
        assert resolve(coupon, "SILVER", upgrade_id="BUMP")
        assert resolve(coupon, upgrade_id="BUMP")
        assert not resolve(coupon, upgrade_id="TOP")


class TestResolveOtherRules:
    def test_upgrade_only(self):
        coupon = build_coupon(valid_upgrade_ids=["BUMP"])
        assert resolve(coupon, upgrade_id="BUMP")
        assert not resolve(coupon, upgrade_id="TOP")
        assert not resolve(coupon, "GOLD", 30)

    def test_restriction_required_never_matches(self):
        coupon = build_coupon()
        assert not resolve(coupon)
        assert not resolve(coupon, "GOLD", 30)
        assert not resolve(coupon, upgrade_id="BUMP")

    def test_plan_grant_matches_plan_code_only(self):
        coupon = build_coupon("plan_assignment", plan_code="GOLD", variant_days=15)
        assert resolve(coupon, "gold")
        assert resolve(coupon, "GOLD", 90)
        assert not resolve(coupon, "SILVER", 15)
        assert not resolve(coupon)

    def test_legacy_applicable_plans(self):
        coupon = build_coupon("free_trial", applicable_plans=["GOLD"])
        assert resolve(coupon, "GOLD")
        assert not resolve(coupon, "SILVER")
        assert not resolve(coupon)

    def test_empty_legacy_applicable_plans_allows_any_plan(self):
        coupon = build_coupon("free_trial")
        assert resolve(coupon)
        assert resolve(coupon, "ANYTHING", 7)


class TestIsApplicable:
    def test_does_not_look_at_lifecycle(self):
        coupon = build_coupon(
            valid_upgrade_ids=["BUMP"], is_active=False, max_uses=1, current_uses=1
        )
        assert resolve(coupon, upgrade_id="BUMP")

    def test_derived_rule_can_be_reused(self):
        rule = derive_applicability(build_coupon(valid_plan_codes=["SILVER"]))
        assert is_applicable(rule, "SILVER")
        assert not is_applicable(rule, "GOLD")

    def test_unknown_rule_raises(self):
        with pytest.raises(TypeError):
            is_applicable(object())  # type: ignore[arg-type]
