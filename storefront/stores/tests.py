"""
Test suite for stores: CRUD, admin assignment and nearest store lookup
"""
from django.test import TestCase
from rest_framework import status

from storefront.core.models import User
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.stores.geo import haversine_km, nearest_store
from storefront.stores.models import Store


class GeoTests(TestCase):

    def test_haversine_zero_distance(self):
        self.assertAlmostEqual(haversine_km(-6.2, 106.8, -6.2, 106.8), 0.0)

    def test_haversine_known_distance(self):
        # Jakarta to Bandung is roughly 120 km as the crow flies
        distance = haversine_km(-6.2000, 106.8166, -6.9175, 107.6191)
        self.assertGreater(distance, 110)
        self.assertLess(distance, 130)

    def test_nearest_store_picks_closest(self):
        near = TestDataFactory.create_store(latitude=-6.21, longitude=106.82)
        TestDataFactory.create_store(latitude=-6.9175, longitude=107.6191)
        store, distance = nearest_store(-6.2, 106.8166, Store.objects.all())
        self.assertEqual(store, near)
        self.assertLess(distance, 5)

    def test_nearest_store_without_candidates(self):
        self.assertEqual(nearest_store(-6.2, 106.8, []), (None, None))


class StoreAPITests(TestCase):

    def setUp(self):
        self.super_admin = TestDataFactory.create_super_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)

    def test_create_store(self):
        response = self.client.post('/api/v1/stores', {
            'name': 'Central Store',
            'address': 'Jl. Thamrin 1',
            'city': 'Jakarta',
            'latitude': -6.19,
            'longitude': 106.82,
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['name'], 'Central Store')
        self.assertTrue(response.data['data']['isActive'])

    def test_create_store_duplicate_name(self):
        TestDataFactory.create_store(name='Central Store')
        response = self.client.post('/api/v1/stores', {'name': 'Central Store', 'latitude': 0, 'longitude': 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_regular_user_cannot_create_store(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/stores', {'name': 'X', 'latitude': 0, 'longitude': 0})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_public_list_hides_inactive_and_deleted(self):
        TestDataFactory.create_store(name='Open')
        TestDataFactory.create_store(name='Closed', is_active=False)
        gone = TestDataFactory.create_store(name='Gone')
        gone.soft_delete()

        self.client.logout()
        response = self.client.get('/api/v1/stores')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['name'] for s in response.data['data']], ['Open'])

    def test_super_admin_can_include_deleted(self):
        gone = TestDataFactory.create_store(name='Gone')
        gone.soft_delete()
        response = self.client.get('/api/v1/stores', {'includeDeleted': 'true'})
        self.assertIn('Gone', [s['name'] for s in response.data['data']])

    def test_delete_and_restore(self):
        store = TestDataFactory.create_store()
        admin = TestDataFactory.create_store_admin(store)

        response = self.client.delete(f'/api/v1/stores/{store.id}')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.delete(f'/api/v1/stores/{store.id}?confirm=yes')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        store.refresh_from_db()
        self.assertTrue(store.is_deleted)
        admin.refresh_from_db()
        self.assertIsNone(admin.store_id)

        response = self.client.get(f'/api/v1/stores/{store.id}')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.patch(f'/api/v1/stores/{store.id}/restore')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        store.refresh_from_db()
        self.assertFalse(store.is_deleted)


class StoreAdminAssignmentTests(TestCase):

    def setUp(self):
        self.super_admin = TestDataFactory.create_super_admin()
        self.store = TestDataFactory.create_store()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)

    def test_assign_and_remove_admin(self):
        user = TestDataFactory.create_user(role=User.ROLE_STORE_ADMIN)
        response = self.client.get('/api/v1/stores/available-admins')
        self.assertIn(user.id, [u['id'] for u in response.data['data']])

        response = self.client.post('/api/v1/stores/assign-admin', {'storeId': self.store.id, 'userId': user.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.store, self.store)

        response = self.client.get(f'/api/v1/stores/{self.store.id}/admins')
        self.assertEqual([u['id'] for u in response.data['data']], [user.id])

        response = self.client.delete(f'/api/v1/stores/remove-admin/{user.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertIsNone(user.store_id)

    def test_cannot_assign_super_admin(self):
        other = TestDataFactory.create_super_admin()
        response = self.client.post('/api/v1/stores/assign-admin', {'storeId': self.store.id, 'userId': other.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_store_admin_cannot_assign(self):
        self.client.authenticate_user(TestDataFactory.create_store_admin(self.store))
        user = TestDataFactory.create_user()
        response = self.client.post('/api/v1/stores/assign-admin', {'storeId': self.store.id, 'userId': user.id})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class NearestStoreTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_nearest_in_range(self):
        store = TestDataFactory.create_store(latitude=-6.21, longitude=106.82)
        response = self.client.get('/api/v1/stores/nearest', {'lat': -6.2, 'lng': 106.8166})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['store']['id'], store.id)
        self.assertTrue(response.data['data']['inRange'])

    def test_nearest_out_of_range(self):
        TestDataFactory.create_store(latitude=-7.2575, longitude=112.7521)  # Surabaya
        response = self.client.get('/api/v1/stores/nearest', {'lat': -6.2, 'lng': 106.8166})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['data']['inRange'])

    def test_nearest_without_stores(self):
        response = self.client.get('/api/v1/stores/nearest', {'lat': -6.2, 'lng': 106.8166})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_nearest_requires_coordinates(self):
        response = self.client.get('/api/v1/stores/nearest')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
