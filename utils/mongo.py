"""
MongoDB request audit log for the booking API.
"""
import logging
from datetime import datetime, timezone

from django.conf import settings
from pymongo import MongoClient, DESCENDING
from pymongo.errors import ConnectionFailure, PyMongoError

logger = logging.getLogger(__name__)

# MongoDB client singleton
_mongo_client = None
_mongo_db = None
_mongo_available = None


def get_mongo_db():
    """Get MongoDB database instance, or None when MongoDB is disabled or unreachable."""
    global _mongo_client, _mongo_db, _mongo_available

    if not settings.MONGODB_ENABLED or _mongo_available is False:
        return None

    if _mongo_db is None:
        try:
            _mongo_client = MongoClient(
                settings.MONGODB_URI,
                serverSelectionTimeoutMS=3000,
                connectTimeoutMS=3000
            )
            _mongo_client.admin.command('ping')
            _mongo_db = _mongo_client[settings.MONGODB_NAME]
            _mongo_available = True

            _ensure_indexes(_mongo_db)
        except ConnectionFailure as e:
            _mark_unavailable(e)
            return None

    return _mongo_db


def _mark_unavailable(error):
    """Stop using MongoDB for the rest of the process."""
    global _mongo_client, _mongo_db, _mongo_available

    logger.warning("MongoDB unavailable, request audit log disabled: %s", error)
    _mongo_available = False
    _mongo_db = None
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None


def _ensure_indexes(db):
    """Create the indexes the audit queries rely on."""
    try:
        api_logs = db.api_logs
        api_logs.create_index([("timestamp", DESCENDING)])
        api_logs.create_index([("endpoint", 1), ("timestamp", DESCENDING)])
        api_logs.create_index([("user_id", 1), ("timestamp", DESCENDING)])
        api_logs.create_index([("response_status", 1)])
    except PyMongoError as e:
        logger.warning("Error creating MongoDB indexes: %s", e)


def log_api_request(endpoint, method, user_id, request_params,
                    response_status, execution_time_ms, booking_id=None):
    """
    Write one API request to the audit log.

    Args:
        endpoint: API endpoint path
        method: HTTP method (GET, POST, etc.)
        user_id: ID of the authenticated user
        request_params: Dictionary of query parameters
        response_status: HTTP response status code
        execution_time_ms: Execution time in milliseconds
        booking_id: Booking the request created or acted on (optional)
    """
    db = get_mongo_db()
    if db is None:
        return

    log_entry = {
        "endpoint": endpoint,
        "method": method,
        "user_id": user_id,
        "request_params": request_params,
        "response_status": response_status,
        "execution_time_ms": execution_time_ms,
        "timestamp": datetime.now(timezone.utc)
    }

    if booking_id is not None:
        log_entry["booking_id"] = booking_id

    try:
        db.api_logs.insert_one(log_entry)
    except ConnectionFailure as e:
        _mark_unavailable(e)
    except PyMongoError as e:
        logger.warning("Error logging to MongoDB: %s", e)

