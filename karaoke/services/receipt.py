"""
Plain text receipt for 80mm paper (48 columns).

Only the column layout is produced here; turning it into printer commands is
the print server's job.
"""
import math
import unicodedata
from datetime import timedelta

from karaoke.models.billing import PaymentMethod
from karaoke.models.gift import GiftType, PERCENT_GIFT_TYPES
from karaoke.utils.timeutils import to_local

PAPER_WIDTH = 48
ITEM_COLUMNS = ((0.45, 'left'), (0.15, 'center'), (0.2, 'right'), (0.2, 'right'))
SERVICE_FEE_PREFIX = 'Phi dich vu thu am'
NAME_WIDTH = 21


def strip_accents(text):
    """Vietnamese text without diacritics, for printers without the code page"""
    text = text.replace('đ', 'd').replace('Đ', 'D')
    decomposed = unicodedata.normalize('NFD', text)
    return ''.join(ch for ch in decomposed if unicodedata.category(ch) != 'Mn')


def format_money(amount):
    return f'{int(round(amount or 0)):,}'.replace(',', '.')


def format_quantity(quantity):
    if isinstance(quantity, float) and quantity.is_integer():
        return str(int(quantity))
    return str(quantity)


class TextReceipt:

    def __init__(self, width=PAPER_WIDTH):
        self.width = width
        self.lines = []

    def text(self, value, align='left'):
        for line in str(value).split('\n'):
            line = line[:self.width]
            if align == 'center':
                line = line.center(self.width)
            elif align == 'right':
                line = line.rjust(self.width)
            else:
                line = line.ljust(self.width)
            self.lines.append(line)
        return self

    def rule(self):
        self.lines.append('-' * self.width)
        return self

    def row(self, *cells):
        widths = [int(math.floor(ratio * self.width)) for ratio, _ in ITEM_COLUMNS]
        widths[-1] = self.width - sum(widths[:-1])
        parts = []
        for cell, width, (_, align) in zip(cells, widths, ITEM_COLUMNS):
            cell = str(cell)[:width]
            if align == 'center':
                parts.append(cell.center(width))
            elif align == 'right':
                parts.append(cell.rjust(width))
            else:
                parts.append(cell.ljust(width))
        self.lines.append(''.join(parts))
        return self

    def feed(self, count=1):
        self.lines.extend([''] * count)
        return self

    def render(self):
        return '\n'.join(self.lines)


def _item_rows(receipt, item):
    description = item.get('description') or ''
    quantity = item.get('quantity') or 0
    price = item.get('price') or 0
    total = quantity * price

    if description.startswith(SERVICE_FEE_PREFIX):
        name, _, time_range = description.partition('\n')
        receipt.row(name, format_quantity(quantity), format_money(price), format_money(total))
        if time_range:
            receipt.row(time_range, '', '', '')
        return

    description = strip_accents(description)
    chunks = [description[i:i + NAME_WIDTH] for i in range(0, len(description), NAME_WIDTH)] or ['']
    receipt.row(chunks[0], format_quantity(quantity), format_money(price), format_money(total))
    for chunk in chunks[1:]:
        receipt.row(chunk, '', '', '')


def render_bill_text(bill, room_name=None, venue_name='Jozo Music Box', venue_address=None):
    """Receipt text for a computed or stored bill"""
    receipt = TextReceipt()
    start = to_local(bill.start_time)
    end = to_local(bill.end_time)

    receipt.text(venue_name, 'center')
    receipt.text('HOA DON THANH TOAN', 'center')
    receipt.rule()
    receipt.text(f"Ma HD: {bill.invoice_code or 'N/A'}", 'center')
    receipt.text(room_name or 'Khong xac dinh', 'center')
    if bill.created_at is not None:
        receipt.text(f"Ngay: {to_local(bill.created_at).strftime('%d/%m/%Y')}")

    if start.date() == end.date():
        receipt.text(f"Gio bat dau: {start.strftime('%H:%M')}")
        receipt.text(f"Gio ket thuc: {end.strftime('%H:%M')}")
    else:
        receipt.text(f"Gio: {start.strftime('%d/%m %H:%M')} - {end.strftime('%d/%m %H:%M')}")

    minutes = math.ceil((end - start).total_seconds() / 60)
    receipt.text(f'Tong gio su dung: {minutes // 60} gio {minutes % 60} phut')

    receipt.rule()
    receipt.text('CHI TIET DICH VU', 'center')
    receipt.rule()
    receipt.row('Dich vu', 'SL', 'Don gia', 'T.Tien')
    items = bill.items
    for item in items:
        _item_rows(receipt, item)

    free_hour = bill.free_hour_promotion
    if free_hour and free_hour.get('free_minutes_applied', 0) > 0:
        promo_start = to_local(bill.actual_start_time or bill.start_time)
        promo_end = promo_start + timedelta(minutes=60)
        receipt.rule()
        receipt.text(f"KM ({promo_start.strftime('%H:%M')} - {promo_end.strftime('%H:%M')})")
        receipt.text(f"-{format_money(free_hour.get('free_amount'))}", 'right')

    subtotal = sum((item.get('quantity') or 0) * (item.get('price') or 0) for item in items)

    gift = bill.gift
    if gift and gift.get('type') != GiftType.SNACKS_DRINKS.code:
        percentage = gift.get('discount_percentage')
        is_percent = gift.get('type') in PERCENT_GIFT_TYPES
        amount = bill.gift_discount_amount
        if not amount:
            amount = subtotal * percentage / 100 if is_percent and percentage else gift.get('discount_amount') or 0
        label = f'Gift {percentage:g}%' if is_percent and percentage is not None else 'Gift'
        receipt.row(label, '', '', f'-{format_money(amount)}')

    promotion = bill.active_promotion
    if promotion:
        percentage = promotion.get('discount_percentage') or 0
        receipt.row('Tong tien hang', '', '', format_money(subtotal))
        receipt.row(f'Discount {percentage:g}%', '', '', f'-{format_money(subtotal * percentage / 100)}')

    receipt.rule()
    receipt.text(f'TONG CONG: {format_money(bill.total_amount)} VND', 'right')
    receipt.rule()

    if bill.payment_method:
        receipt.text(f'Phuong thuc thanh toan: {PaymentMethod.display(bill.payment_method)}')

    receipt.rule()
    receipt.text('Cam on quy khach da su dung dich vu cua Jozo', 'center')
    receipt.text('Hen gap lai quy khach!', 'center')
    receipt.rule()
    if venue_address:
        receipt.text(f'Dia chi: {venue_address}', 'center')
    receipt.feed(2)
    return receipt.render()
