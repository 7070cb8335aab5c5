"""
Free-hour promotion, percentage promotions and gift discounts.
"""
import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, time
from typing import Dict, Optional, Tuple

from flask import current_app

from karaoke import db
from karaoke.exceptions import BadRequestError, NotFoundError, parse_id
from karaoke.models.gift import GiftType, PERCENT_GIFT_TYPES
from karaoke.models.promotion import Promotion, PromotionScope
from karaoke.models.schedule import ScheduleGiftStatus
from karaoke.utils.timeutils import local_datetime

logger = logging.getLogger(__name__)


def is_eligible_for_free_hour(requested: bool, fnb_total: float, session_minutes: int) -> bool:
    """Free hour needs the explicit flag, enough F&B and a long enough session"""
    config = current_app.config
    return (
        bool(requested)
        and fnb_total >= config['FREE_HOUR_MIN_FNB_TOTAL']
        and session_minutes >= config['FREE_HOUR_MIN_SESSION_MINUTES']
    )


@dataclass(frozen=True)
class FreeHourBudget:
    """
    Minutes of free room time still to hand out.

    consume() never mutates; it returns the next budget together with the
    minutes and amount credited for one sub-interval, so the budget can be
    folded over the sub-intervals in chronological order.
    """
    remaining_minutes: int
    window: Tuple[int, int] = (10, 19)
    applied_minutes: int = 0
    credited_amount: float = 0.0

    @classmethod
    def for_session(cls, eligible: bool) -> 'FreeHourBudget':
        config = current_app.config
        minutes = config['FREE_HOUR_BUDGET_MINUTES'] if eligible else 0
        return cls(remaining_minutes=minutes, window=tuple(config['FREE_HOUR_WINDOW']))

    def consume(self, start: datetime, end: datetime, hourly_rate: float) -> Tuple['FreeHourBudget', int, float]:
        if self.remaining_minutes <= 0:
            return self, 0, 0.0

        day = start.date()
        promo_start = max(start, local_datetime(day, time(self.window[0], 0)))
        promo_end = min(end, local_datetime(day, time(self.window[1], 0)))
        if promo_end <= promo_start:
            return self, 0, 0.0

        promo_minutes = math.ceil((promo_end - promo_start).total_seconds() / 60)
        minutes = min(self.remaining_minutes, promo_minutes)
        amount = minutes / 60 * hourly_rate
        budget = replace(
            self,
            remaining_minutes=self.remaining_minutes - minutes,
            applied_minutes=self.applied_minutes + minutes,
            credited_amount=self.credited_amount + amount
        )
        return budget, minutes, amount

    def summary(self) -> Optional[Dict]:
        if self.applied_minutes <= 0:
            return None
        return {
            'free_minutes_applied': self.applied_minutes,
            'free_amount': self.credited_amount
        }


def claimed_gift(schedule_gift: Optional[Dict]) -> Optional[Dict]:
    """Only a claimed gift takes part in billing"""
    if schedule_gift and schedule_gift.get('status') == ScheduleGiftStatus.CLAIMED.code:
        return schedule_gift
    return None


def gift_discount(schedule_gift: Optional[Dict], subtotal: float) -> float:
    """Monetary discount of a claimed gift against the pre-discount subtotal"""
    if not schedule_gift:
        return 0.0
    gift_type = schedule_gift.get('type')
    amount = 0.0
    if gift_type in PERCENT_GIFT_TYPES:
        percentage = schedule_gift.get('discount_percentage') or 0
        if percentage > 0:
            amount += subtotal * percentage / 100
    if gift_type == GiftType.DISCOUNT_AMOUNT.code:
        fixed = schedule_gift.get('discount_amount') or 0
        if fixed > 0:
            amount += fixed
    return amount


def gift_bundle_lines(schedule_gift: Optional[Dict]):
    """Zero-priced lines for the items of a snacks & drinks gift"""
    if not schedule_gift or schedule_gift.get('type') != GiftType.SNACKS_DRINKS.code:
        return []
    return [
        {
            'description': f"Gift - {item.get('name')}",
            'quantity': item.get('quantity', 1),
            'price': 0,
            'total_price': 0
        }
        for item in schedule_gift.get('items') or []
    ]


class PromotionService:

    def resolve(self, promotion_id) -> Optional[Promotion]:
        """Promotion selected by the cashier; unknown ids are ignored"""
        if promotion_id in (None, ''):
            return None
        promotion = db.session.get(Promotion, parse_id(promotion_id, 'promotion_id'))
        if promotion is None:
            logger.warning('Promotion %s not found, billing without it', promotion_id)
        return promotion

    def list_promotions(self, active_only=False):
        query = Promotion.query
        if active_only:
            query = query.filter_by(is_active=True)
        return query.order_by(Promotion.created_at.desc()).all()

    def get_promotion(self, promotion_id) -> Promotion:
        promotion = db.session.get(Promotion, parse_id(promotion_id, 'promotion_id'))
        if promotion is None:
            raise NotFoundError('Promotion', promotion_id)
        return promotion

    def save_promotion(self, data: Dict, promotion: Optional[Promotion] = None) -> Promotion:
        if promotion is None:
            if not data.get('name'):
                raise BadRequestError('Promotion name is required')
            promotion = Promotion()

        if 'name' in data:
            promotion.name = data['name']
        if 'description' in data:
            promotion.description = data['description']
        if 'discount_percentage' in data:
            try:
                percentage = float(data['discount_percentage'])
            except (TypeError, ValueError):
                raise BadRequestError('discount_percentage must be a number')
            if not 0 <= percentage <= 100:
                raise BadRequestError('discount_percentage must be between 0 and 100')
            promotion.discount_percentage = percentage
        if 'applies_to' in data:
            scopes = [scope.code for scope in PromotionScope]
            if data['applies_to'] not in scopes:
                raise BadRequestError(f"applies_to must be one of {', '.join(scopes)}")
            promotion.applies_to = data['applies_to']
        if 'targets' in data:
            promotion.targets = data['targets']
        if 'is_active' in data:
            promotion.is_active = bool(data['is_active'])

        db.session.add(promotion)
        db.session.commit()
        return promotion

    def delete_promotion(self, promotion_id):
        promotion = self.get_promotion(promotion_id)
        db.session.delete(promotion)
        db.session.commit()
