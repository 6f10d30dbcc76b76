"""
Tests for user registration.
"""
from django.contrib.auth import get_user_model
from django.test import override_settings
from rest_framework import status
from rest_framework.test import APITestCase

User = get_user_model()


@override_settings(MONGODB_ENABLED=False)
class RegistrationAPITests(APITestCase):
    """Test the registration endpoint."""

    def register(self, **overrides):
        data = {
            'username': 'priya',
            'email': 'Priya@Example.com',
            'password': 'SecurePass123!',
            'password_confirm': 'SecurePass123!',
        }
        data.update(overrides)
        return self.client.post('/api/register/', data, format='json')

    def test_register_success(self):
        """Test registration creates a user and returns usable tokens."""
        response = self.register()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['username'], 'priya')
        self.assertEqual(response.data['user']['email'], 'priya@example.com')
        self.assertNotIn('password', response.data['user'])

        user = User.objects.get(username='priya')
        self.assertTrue(user.check_password('SecurePass123!'))

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['tokens']['access']}")
        bookings = self.client.get('/api/bookings/my/')
        self.assertEqual(bookings.status_code, status.HTTP_200_OK)
        self.assertEqual(bookings.data['count'], 0)

    def test_registered_user_can_obtain_token(self):
        self.register()

        response = self.client.post('/api/token/', {
            'username': 'priya',
            'password': 'SecurePass123!'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_password_mismatch(self):
        response = self.register(password_confirm='Different123!')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password_confirm', response.data)
        self.assertFalse(User.objects.filter(username='priya').exists())

    def test_weak_password_rejected(self):
        response = self.register(password='12345', password_confirm='12345')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_duplicate_username_or_email(self):
        User.objects.create_user(username='priya', email='other@example.com', password='x')

        self.assertEqual(self.register().status_code, status.HTTP_400_BAD_REQUEST)
        response = self.register(username='priya2', email='OTHER@example.com')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)
