"""
Tests for the request audit log.
"""
from unittest import mock

from django.http import HttpResponse
from django.test import RequestFactory, SimpleTestCase, override_settings
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError
from rest_framework.response import Response

from utils import mongo
from utils.middleware import APILoggingMiddleware


class APILoggingMiddlewareTests(SimpleTestCase):
    """Test which requests reach the audit log and what is recorded."""

    def setUp(self):
        self.factory = RequestFactory()

    def run_middleware(self, request, response):
        middleware = APILoggingMiddleware(lambda req: response)
        with mock.patch('utils.middleware.log_api_request') as log_request:
            result = middleware(request)
        return result, log_request

    def test_booking_request_logged_with_booking_id(self):
        request = self.factory.post('/api/bookings/?source=web')
        response = Response({'message': 'ok', 'booking': {'id': 42}}, status=201)

        result, log_request = self.run_middleware(request, response)

        self.assertIs(result, response)
        log_request.assert_called_once()
        kwargs = log_request.call_args.kwargs
        self.assertEqual(kwargs['endpoint'], '/api/bookings/')
        self.assertEqual(kwargs['method'], 'POST')
        self.assertEqual(kwargs['response_status'], 201)
        self.assertEqual(kwargs['request_params'], {'source': 'web'})
        self.assertEqual(kwargs['booking_id'], 42)
        self.assertIsNone(kwargs['user_id'])

    def test_booking_detail_logged_with_its_id(self):
        request = self.factory.get('/api/bookings/7/')
        response = Response({'id': 7, 'pnr': 'ABCDE12345'})

        _, log_request = self.run_middleware(request, response)

        self.assertEqual(log_request.call_args.kwargs['booking_id'], 7)

    def test_other_endpoints_not_logged(self):
        request = self.factory.get('/api/trains/')

        _, log_request = self.run_middleware(request, HttpResponse('ok'))

        log_request.assert_not_called()

    def test_audit_failure_does_not_break_response(self):
        request = self.factory.get('/api/bookings/my/')
        response = HttpResponse('ok')
        middleware = APILoggingMiddleware(lambda req: response)

        with mock.patch('utils.middleware.log_api_request', side_effect=RuntimeError('down')):
            with self.assertLogs('utils.middleware', level='ERROR'):
                result = middleware(request)

        self.assertIs(result, response)


class MongoAuditLogTests(SimpleTestCase):
    """Test the MongoDB connection handling."""

    def setUp(self):
        patcher = mock.patch.multiple(mongo, _mongo_client=None, _mongo_db=None, _mongo_available=None)
        patcher.start()
        self.addCleanup(patcher.stop)

    @override_settings(MONGODB_ENABLED=False)
    def test_disabled_returns_none(self):
        with mock.patch('utils.mongo.MongoClient') as client:
            self.assertIsNone(mongo.get_mongo_db())
            mongo.log_api_request('/api/bookings/', 'GET', 1, {}, 200, 1.5)

        client.assert_not_called()

    @override_settings(MONGODB_ENABLED=True)
    def test_unreachable_server_is_remembered(self):
        with mock.patch('utils.mongo.MongoClient') as client:
            client.return_value.admin.command.side_effect = ServerSelectionTimeoutError('no server')
            with self.assertLogs('utils.mongo', level='WARNING'):
                self.assertIsNone(mongo.get_mongo_db())
            self.assertIsNone(mongo.get_mongo_db())

        client.assert_called_once()

    @override_settings(MONGODB_ENABLED=True, MONGODB_NAME='audit_test')
    def test_log_entry_written(self):
        with mock.patch('utils.mongo.MongoClient') as client:
            mongo.log_api_request('/api/bookings/', 'POST', 3, {'x': '1'}, 201, 12.5, booking_id=9)

        db = client.return_value.__getitem__.return_value
        client.return_value.__getitem__.assert_called_with('audit_test')
        entry = db.api_logs.insert_one.call_args.args[0]
        self.assertEqual(entry['endpoint'], '/api/bookings/')
        self.assertEqual(entry['user_id'], 3)
        self.assertEqual(entry['booking_id'], 9)
        self.assertIn('timestamp', entry)

    @override_settings(MONGODB_ENABLED=True)
    def test_insert_failure_logged_not_raised(self):
        with mock.patch('utils.mongo.MongoClient') as client:
            db = client.return_value.__getitem__.return_value
            db.api_logs.insert_one.side_effect = PyMongoError('write failed')
            with self.assertLogs('utils.mongo', level='WARNING'):
                mongo.log_api_request('/api/bookings/', 'GET', None, {}, 200, 2.0)

    @override_settings(MONGODB_ENABLED=True)
    def test_connection_lost_after_connect_disables_audit_log(self):
        """A server that drops after connecting is skipped from then on, warning once."""
        with mock.patch('utils.mongo.MongoClient') as client:
            db = client.return_value.__getitem__.return_value
            db.api_logs.insert_one.side_effect = ServerSelectionTimeoutError('server gone')

            with self.assertLogs('utils.mongo', level='WARNING') as logs:
                mongo.log_api_request('/api/bookings/', 'GET', None, {}, 200, 2.0)
                mongo.log_api_request('/api/bookings/', 'GET', None, {}, 200, 2.0)

            self.assertEqual(len(logs.records), 1)
            db.api_logs.insert_one.assert_called_once()
            self.assertIsNone(mongo.get_mongo_db())
            client.assert_called_once()
