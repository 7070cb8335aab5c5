import pytest

from karaoke.exceptions import BadRequestError
from karaoke.services.menu import MenuResolver, MenuService, PrimaryMenuItem, VariantMenuItem, parse_price


@pytest.mark.parametrize('raw, expected', [
    ('10.000', 10000),
    ('15,000', 15000),
    (25, 25000),
    ('25', 25000),
    (30000, 30000),
    ('free', 0),
    (None, 0),
])
def test_parse_price(raw, expected):
    assert parse_price(raw) == expected


class TestResolver:

    def test_primary_entry(self, app, make_menu):
        water = make_menu()
        entry = MenuResolver().find_menu_item_by_id(water.id)
        assert isinstance(entry, PrimaryMenuItem)
        assert (entry.display_name, entry.price) == ('Mineral water', 20000)

    def test_secondary_item_inherits_parent(self, app, make_menu):
        beer = make_menu(name='Beer', price='25.000')
        tiger = MenuService().save_item({'name': 'Tiger', 'price': 28000, 'parent_id': beer.id})
        entry = MenuResolver().find_menu_item_by_id(tiger.id)
        assert isinstance(entry, VariantMenuItem)
        assert entry.display_name == 'Beer - Tiger'
        assert entry.category == 'drink'
        assert entry.price == 28000

    def test_embedded_variant(self, app, make_menu):
        fruit = make_menu(name='Fruit platter', price='50', category='snack',
                          variants=[{'id': 'large-fruit', 'name': 'Large', 'price': '80.000'}])
        entry = MenuResolver().find_menu_item_by_id('large-fruit')
        assert entry.display_name == 'Fruit platter - Large'
        assert entry.price == 80000
        assert entry.parent_id == fruit.id

    def test_unknown_id(self, app):
        assert MenuResolver().find_menu_item_by_id('missing') is None


class TestMenuService:

    def test_variants_get_ids(self, app):
        entry = MenuService().save_menu({'name': 'Fries', 'price': '30', 'variants': [{'name': 'Big', 'price': 45}]})
        assert entry.variants[0]['id']

    def test_rejects_unknown_category(self, app):
        with pytest.raises(BadRequestError):
            MenuService().save_menu({'name': 'Cake', 'category': 'dessert'})

    def test_rejects_negative_stock(self, app, make_menu):
        service = MenuService()
        entry = make_menu()
        with pytest.raises(BadRequestError):
            service.save_menu({'inventory_quantity': -1}, entry)
