from callrelay.models.call_record import CallDirection, CallRecord
from callrelay.models.custom_field import FieldShape

__all__ = ["CallDirection", "CallRecord", "FieldShape"]
