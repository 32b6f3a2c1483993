from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from apps.pricing.models import DiscountRule, DiscountType


@dataclass(frozen=True)
class AppliedDiscount:
    rule: DiscountRule
    amount: Decimal

    def as_dict(self):
        return {
            "discount_id": str(self.rule.id),
            "code": self.rule.code,
            "discount_amount": str(self.amount),
        }


def apply_discount_code(code, subtotal, now=None, vendor=None):
    """Validate ``code`` against ``subtotal`` and compute the discount.

    Nothing is written; redemption counting belongs to whoever commits the
    discounted document.
    """
    code = (code or "").strip().upper()
    if not code:
        raise ValidationError({"code": "A coupon code is required."})
    try:
        subtotal = Decimal(str(subtotal))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({"subtotal": "A valid subtotal is required."})
    if subtotal < 0:
        raise ValidationError({"subtotal": "Subtotal cannot be negative."})
    now = now or timezone.now()

    rules = DiscountRule.objects.filter(code=code, is_active=True)
    if vendor is not None:
        rules = rules.filter(vendor=vendor)
    rules = list(rules[:2])
    if not rules:
        raise NotFound("Invalid coupon code.")
    if len(rules) > 1:
        raise ValidationError({"vendor": "Several vendors use this code; pass the vendor it belongs to."})
    rule = rules[0]

    if rule.valid_from and rule.valid_from > now:
        raise ValidationError({"code": "This coupon is not yet active."})
    if rule.valid_until and rule.valid_until < now:
        raise ValidationError({"code": "This coupon has expired."})
    if rule.usage_limit is not None and rule.times_used >= rule.usage_limit:
        raise ValidationError({"code": "This coupon has reached its usage limit."})
    if rule.min_spend is not None and subtotal < rule.min_spend:
        raise ValidationError({"subtotal": f"You must spend at least {rule.min_spend} to use this coupon."})

    if rule.discount_type == DiscountType.PERCENT:
        amount = subtotal * rule.value / Decimal("100")
    else:
        amount = rule.value
    amount = min(amount, subtotal).quantize(Decimal("0.01"))
    return AppliedDiscount(rule=rule, amount=amount)
