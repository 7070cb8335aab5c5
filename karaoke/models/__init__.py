from karaoke.models.room import Room, RoomType
from karaoke.models.schedule import RoomSchedule, RoomScheduleStatus, ScheduleGiftStatus
from karaoke.models.price import Price, Holiday, DayType
from karaoke.models.menu import FnbMenu, FnbMenuItem, FnbCategory
from karaoke.models.fnb_order import FnbOrder, FnbOrderHistory
from karaoke.models.promotion import Promotion, PromotionScope
from karaoke.models.gift import Gift, GiftType, BundleSource
from karaoke.models.billing import Bill, PaymentMethod

__all__ = [
    'Room', 'RoomType',
    'RoomSchedule', 'RoomScheduleStatus', 'ScheduleGiftStatus',
    'Price', 'Holiday', 'DayType',
    'FnbMenu', 'FnbMenuItem', 'FnbCategory',
    'FnbOrder', 'FnbOrderHistory',
    'Promotion', 'PromotionScope',
    'Gift', 'GiftType', 'BundleSource',
    'Bill', 'PaymentMethod'
]
