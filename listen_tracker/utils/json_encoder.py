"""Custom JSON encoding utilities"""
import json
from datetime import date, datetime
from enum import Enum

class DateTimeEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles dates, datetimes and enums"""
    def default(self, obj):
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)

def json_dumps(obj):
    """Helper function to dump JSON with datetime handling"""
    return json.dumps(obj, cls=DateTimeEncoder)
