from __future__ import annotations

import unittest
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from db_fixtures import add_product, make_engine
from restaurant_pos.db import get_db
from restaurant_pos.errors import ConfigurationError
from restaurant_pos.main import create_app
from restaurant_pos.templating import templates


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        self.app = create_app()

        def override_get_db():
            db = Session(self.engine, autoflush=False, expire_on_commit=False)
            try:
                yield db
            finally:
                db.close()

        self.app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.app.dependency_overrides.clear()
        self.engine.dispose()


class RegisterFlowTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        with Session(self.engine) as db:
            self.arepa_id = add_product(db, name='Arepa', price='5.00', stock=10).id
            self.malta_id = add_product(db, name='Malta', price='3.00', stock=1).id
            db.commit()

    def _checkout(self, *items: tuple[int, int]):
        return self.client.post(
            '/pos/checkout',
            json={'items': [{'product_id': product_id, 'quantity': quantity} for product_id, quantity in items]},
        )

    def test_full_register_day(self) -> None:
        self.assertEqual(self.client.get('/cash/session').json(), {'open': False})

        closed = self._checkout((self.arepa_id, 1))
        self.assertEqual(closed.status_code, 400)
        self.assertIn('closed', closed.json()['detail'])

        opened = self.client.post('/cash/open', json={'opening_balance': '100'})
        self.assertEqual(opened.status_code, 201)
        self.assertTrue(opened.json()['open'])
        self.assertEqual(self.client.post('/cash/open', json={'opening_balance': '5'}).status_code, 400)

        placed = self._checkout((self.arepa_id, 2), (self.malta_id, 1))
        self.assertEqual(placed.status_code, 201)
        body = placed.json()
        self.assertEqual(Decimal(str(body['total'])), Decimal('13'))
        self.assertEqual(body['session']['total_orders'], 1)
        self.assertEqual(Decimal(str(body['session']['total_sales'])), Decimal('13'))
        self.assertEqual(body['stock_after'], {str(self.arepa_id): 8, str(self.malta_id): 0})

        sold_out = self._checkout((self.malta_id, 1))
        self.assertEqual(sold_out.status_code, 400)
        self.assertIn('out of stock', sold_out.json()['detail'])

        receipt = self.client.get(body['receipt_url'])
        self.assertEqual(receipt.status_code, 200)
        self.assertIn('COPIA CLIENTE', receipt.text)
        self.assertIn('COPIA NEGOCIO', receipt.text)
        self.assertEqual(receipt.headers['cache-control'], 'no-store')

        pdf = self.client.get(body['receipt_pdf_url'])
        self.assertEqual(pdf.headers['content-type'], 'application/pdf')
        self.assertTrue(pdf.content.startswith(b'%PDF'))

        detail = self.client.get(f"/pos/orders/{body['order_id']}").json()
        self.assertEqual([item['product_name'] for item in detail['items']], ['Arepa', 'Malta'])

        current = self.client.get('/cash/session').json()
        self.assertEqual(current['total_orders'], 1)
        self.assertEqual(len(current['orders']), 1)
        self.assertIn('Detalle de órdenes', self.client.get('/cash/session/summary').text)

        closed_day = self.client.post('/cash/close', json={'closing_balance': '110'})
        self.assertEqual(closed_day.status_code, 200)
        summary = closed_day.json()
        self.assertEqual(Decimal(str(summary['expected_balance'])), Decimal('113'))
        self.assertEqual(Decimal(str(summary['difference'])), Decimal('-3'))

        self.assertEqual(self.client.get('/cash/session').json(), {'open': False})
        self.assertFalse(self.client.get('/').json()['cash_open'])
        self.assertEqual(self.client.get('/cash/session/summary').status_code, 404)
        session_id = summary['session_id']
        self.assertEqual(self.client.get(f'/cash/session/summary?session_id={session_id}').status_code, 200)
        summary_pdf = self.client.get(f'/cash/session/summary.pdf?session_id={session_id}')
        self.assertTrue(summary_pdf.content.startswith(b'%PDF'))
        self.assertEqual(len(self.client.get('/cash/sessions').json()['sessions']), 1)

    def test_bad_requests(self) -> None:
        self.client.post('/cash/open', json={'opening_balance': '0'})
        self.assertEqual(self._checkout().status_code, 400)
        self.assertEqual(self._checkout((999, 1)).status_code, 404)
        self.assertEqual(self._checkout((self.arepa_id, 0)).status_code, 422)
        self.assertEqual(self.client.get('/pos/orders/999').status_code, 404)
        self.assertEqual(self.client.post('/cash/open', json={'opening_balance': '-1'}).status_code, 422)
        self.assertEqual(self.client.get('/cash/session/summary?session_id=999').status_code, 404)

    def test_close_without_session(self) -> None:
        self.assertEqual(self.client.post('/cash/close', json={'closing_balance': '0'}).status_code, 400)

    def test_catalog(self) -> None:
        catalog = self.client.get('/pos/catalog').json()
        self.assertEqual(catalog['categories'], ['Otros'])
        self.assertEqual([row['name'] for row in catalog['products_by_category']['Otros']], ['Arepa', 'Malta'])


class InventoryApiTests(ApiTestCase):
    def test_recipe_preparation_flow(self) -> None:
        ingredient = self.client.post(
            '/inventory/ingredients',
            json={'name': 'Harina', 'current_quantity': '5', 'min_quantity': '1', 'cost_per_unit': '1.20'},
        )
        self.assertEqual(ingredient.status_code, 201)
        ingredient_id = ingredient.json()['id']

        recipe = self.client.post(
            '/inventory/recipes',
            json={'name': 'Arepa', 'price': '6.50', 'items': [{'ingredient_id': ingredient_id, 'quantity': '2'}]},
        )
        self.assertEqual(recipe.status_code, 201)
        recipe_id = recipe.json()['id']

        unlinked = self.client.post(f'/inventory/recipes/{recipe_id}/prepare', json={'quantity': 1})
        self.assertEqual(unlinked.status_code, 400)

        category = self.client.post('/inventory/categories', json={'name': 'Comida'}).json()
        product = self.client.post(
            '/inventory/products',
            json={'name': 'Arepa', 'price': '6.50', 'recipe_id': recipe_id, 'category_id': category['id']},
        )
        self.assertEqual(product.status_code, 201)
        self.assertEqual(product.json()['min_stock'], 10)

        prepared = self.client.post(f'/inventory/recipes/{recipe_id}/prepare', json={'quantity': 2})
        self.assertEqual(prepared.status_code, 200)
        body = prepared.json()
        self.assertEqual(body['product_stock'], 2)
        self.assertEqual(Decimal(str(body['consumed'][0]['remaining'])), Decimal('1'))

        short = self.client.post(f'/inventory/recipes/{recipe_id}/prepare', json={'quantity': 1})
        self.assertEqual(short.status_code, 400)
        self.assertIn('Harina', short.json()['detail'])

        logs = self.client.get('/inventory/logs').json()['logs']
        self.assertEqual([row['movement_type'] for row in logs], ['RECIPE_PRODUCED', 'RECIPE_USED'])

        dashboard = self.client.get('/inventory/dashboard').json()
        self.assertEqual(dashboard['total_ingredients'], 1)
        self.assertEqual(dashboard['low_stock_count'], 1)
        self.assertEqual(dashboard['active_recipes'], 1)

    def test_admin_endpoints(self) -> None:
        self.assertEqual(self.client.post('/inventory/categories', json={'name': 'Bebidas'}).status_code, 201)
        self.assertEqual(self.client.post('/inventory/categories', json={'name': 'Bebidas'}).status_code, 400)

        product_id = self.client.post('/inventory/products', json={'name': 'Malta', 'price': '2'}).json()['id']
        edited = self.client.patch(f'/inventory/products/{product_id}', json={'current_stock': 12, 'is_active': False})
        self.assertEqual(edited.json()['current_stock'], 12)
        self.assertFalse(edited.json()['is_active'])
        self.assertEqual(self.client.get('/pos/catalog').json()['categories'], [])
        self.assertEqual(self.client.delete(f'/inventory/products/{product_id}').status_code, 204)
        self.assertEqual(self.client.get('/inventory/products').json(), {'products': []})

        ingredient_id = self.client.post('/inventory/ingredients', json={'name': 'Queso'}).json()['id']
        adjusted = self.client.patch(f'/inventory/ingredients/{ingredient_id}', json={'current_quantity': '4'})
        self.assertEqual(Decimal(str(adjusted.json()['current_quantity'])), Decimal('4'))
        self.assertEqual(self.client.get('/inventory/ingredients?search=que').json()['ingredients'][0]['name'], 'Queso')
        self.assertEqual(self.client.delete(f'/inventory/ingredients/{ingredient_id}').status_code, 204)
        self.assertEqual(self.client.delete(f'/inventory/ingredients/{ingredient_id}').status_code, 404)

        self.assertEqual(self.client.get('/inventory/recipes/999').status_code, 404)
        self.assertEqual(self.client.post('/inventory/recipes/999/toggle').status_code, 404)
        self.assertEqual(self.client.post('/inventory/recipes', json={'name': 'Vacía', 'items': []}).status_code, 400)


class FailureHandlingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.app = create_app()
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.app.dependency_overrides.clear()

    def test_missing_configuration_renders_error_page(self) -> None:
        def broken_get_db():
            raise ConfigurationError('DATABASE_URL is not set.')

        self.app.dependency_overrides[get_db] = broken_get_db
        response = self.client.get('/pos/catalog')
        self.assertEqual(response.status_code, 503)
        self.assertIn('DATABASE_URL is not set.', response.text)

    def test_unreachable_database_returns_json(self) -> None:
        def offline_get_db():
            raise OperationalError('SELECT 1', {}, Exception('connection refused'))

        self.app.dependency_overrides[get_db] = offline_get_db
        response = self.client.get('/cash/session')
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['code'], 'db_unavailable')

    def test_app_renders_with_shared_templates(self) -> None:
        self.assertIs(self.app.state.templates, templates)

    def test_robots(self) -> None:
        response = self.client.get('/robots.txt')
        self.assertIn('Disallow: /', response.text)
        self.assertEqual(response.headers['x-robots-tag'], 'noindex, nofollow, noarchive')
        self.assertNotIn('cache-control', response.headers)


if __name__ == '__main__':
    unittest.main()
