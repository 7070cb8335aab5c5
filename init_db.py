#!/usr/bin/env python3
"""
Database initialisation with demo data
"""
from karaoke import create_app, db
from karaoke.models import (FnbCategory, FnbMenu, FnbMenuItem, Price, Promotion, PromotionScope,
                            Room, RoomType)

DEMO_ROOMS = [
    ('Room 1', RoomType.SMALL.code, 4, 'Small room by the entrance'),
    ('Room 2', RoomType.SMALL.code, 4, 'Small room'),
    ('Room 3', RoomType.MEDIUM.code, 8, 'Medium room with two screens'),
    ('Room 4', RoomType.MEDIUM.code, 8, 'Medium room'),
    ('Room 5', RoomType.LARGE.code, 15, 'Party room'),
]


def _slot(start, end, small, medium, large):
    return {
        'start': start,
        'end': end,
        'prices': [
            {'room_type': RoomType.SMALL.code, 'price': small},
            {'room_type': RoomType.MEDIUM.code, 'price': medium},
            {'room_type': RoomType.LARGE.code, 'price': large},
        ]
    }


DEMO_PRICES = {
    'weekday': [
        _slot('10:00', '17:59', 100000, 150000, 200000),
        _slot('18:00', '23:59', 150000, 200000, 250000),
    ],
    'weekend': [
        _slot('10:00', '17:59', 130000, 180000, 230000),
        _slot('18:00', '23:59', 180000, 230000, 280000),
    ],
    'holiday': [
        _slot('10:00', '23:59', 200000, 250000, 300000),
    ],
}


def seed_demo_data():
    """Fill an empty database; returns False when data already exists"""
    if Room.query.first():
        return False

    for name, room_type, capacity, description in DEMO_ROOMS:
        db.session.add(Room(name=name, room_type=room_type, capacity=capacity, description=description))

    for day_type, time_slots in DEMO_PRICES.items():
        db.session.add(Price(day_type, time_slots))

    water = FnbMenu(name='Mineral water', price='10.000', category=FnbCategory.DRINK.code,
                    inventory_quantity=200)
    beer = FnbMenu(name='Beer', price='25.000', category=FnbCategory.DRINK.code,
                   inventory_quantity=120)
    fruit = FnbMenu(name='Fruit platter', price='50.000', category=FnbCategory.SNACK.code,
                    inventory_quantity=30)
    fruit.variants = [{'name': 'Large', 'price': '80.000'}]
    db.session.add_all([water, beer, fruit])
    db.session.flush()

    db.session.add(FnbMenuItem(parent_id=beer.id, name='Tiger', price=28000, inventory_quantity=96))
    db.session.add(FnbMenuItem(parent_id=beer.id, name='Heineken', price=30000, inventory_quantity=96))

    promotion = Promotion(name='Happy hour', description='10% off every room',
                          discount_percentage=10, applies_to=PromotionScope.ALL.code)
    promotion.targets = []
    db.session.add(promotion)

    db.session.commit()
    return True


def init_database():
    app = create_app()

    with app.app_context():
        print('Creating database tables...')
        db.create_all()
        if seed_demo_data():
            print(f'Added {len(DEMO_ROOMS)} rooms, price tables, menu and a promotion')
        else:
            print('The database already contains data!')


if __name__ == '__main__':
    init_database()
