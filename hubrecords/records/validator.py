# hubrecords/records/validator.py
"""Canonical shape of a hub record and validation of create/update payloads.

Create payloads become a complete record: every optional field omitted by the
client is filled with its declared default. Update payloads become a
``Patch``, which holds only the fields the client sent. A field absent from
the patch is left alone; a field sent as ``null`` is cleared back to its
default. Required fields cannot be cleared.

Server-assigned fields (identifier, owner, timestamps) are never client
writable and are silently dropped from both kinds of payload, as are keys
that are not part of the record.
"""

import math

from hubrecords.errors import ValidationError
from hubrecords.records import financials, lifecycle
from hubrecords.security.input_validator import InputValidator

REQUIRED_FIELDS = ('entity_name', 'entity_phone')

SHORT_TEXT_FIELDS = (
    'hub_location', 'recorder_name', 'entry_date',
    'entity_name', 'entity_phone', 'entity_email',
    'product_name', 'batch_sku', 'serial_number',
    'verification_date', 'verification_staff',
)
LONG_TEXT_FIELDS = (
    'entity_address', 'specifications', 'accessories_notes', 'record_description',
    'quality_check', 'materials_notes', 'action_taken',
)
TEXT_FIELDS = SHORT_TEXT_FIELDS + LONG_TEXT_FIELDS

# Non-negative amounts; balance is signed (negative means overpaid)
AMOUNT_FIELDS = ('processing_fee', 'additional_cost', 'total_value', 'amount_paid')
SIGNED_AMOUNT_FIELDS = ('balance',)
FLAG_FIELDS = ('transaction_completed', 'is_dispatched')

SERVER_FIELDS = ('id', '_id', 'user_id', 'owner_id', 'created_at', 'updated_at')

SHORT_TEXT_MAX = 255
LONG_TEXT_MAX = 5000
PHOTO_MAX = 10 * 1024 * 1024  # encoded image or URI
TIMELINE_MAX = 500


def default_verification():
    return {'verified': False, 'verifier_name': ''}


def record_defaults(category=None):
    """Declared default of every client-writable field."""
    category = category or lifecycle.DEFAULT_CATEGORY
    defaults = {field: '' for field in TEXT_FIELDS}
    defaults.update({field: 0.0 for field in AMOUNT_FIELDS + SIGNED_AMOUNT_FIELDS})
    defaults.update({field: False for field in FLAG_FIELDS})
    defaults.update({
        'product_category': category,
        'status': lifecycle.initial_status(category),
        'log_timeline': [],
        'verification_confirmation': default_verification(),
        'product_photo': None,
    })
    return defaults


WRITABLE_FIELDS = frozenset(record_defaults())


class Patch:
    """Fields explicitly set by an update. Absent means "leave unchanged".

    ``cleared`` names the fields the client sent as null; their entry in
    ``changes`` holds the declared default.
    """

    def __init__(self, changes=None, status_note=None, cleared=()):
        self.changes = dict(changes or {})
        self.status_note = status_note
        self.cleared = frozenset(cleared)

    def fields(self):
        return sorted(self.changes)

    def apply(self, target):
        """Write every patched field onto ``target``; other attributes are untouched."""
        for field, value in self.changes.items():
            setattr(target, field, value)
        return target

    def __repr__(self):
        return f'<Patch {self.fields()}>'


class RecordValidator:
    def __init__(self, input_validator=None):
        self.input_validator = input_validator or InputValidator()

    def validate_create(self, data) -> dict:
        """Validate a new record payload and return the complete record fields."""
        if not isinstance(data, dict):
            raise ValidationError("Record data must be an object")

        changes, errors, _ = self._clean(data, partial=False)
        for field in REQUIRED_FIELDS:
            if not changes.get(field):
                errors.setdefault(field, 'required')
        if errors:
            raise ValidationError("Invalid record data", errors=errors)

        changes = financials.apply_recalculation(changes)
        record = record_defaults(changes.get('product_category'))
        record.update(changes)
        if 'log_timeline' in changes:
            record['log_timeline'] = lifecycle.clean_timeline(changes['log_timeline'])
        return record

    def validate_update(self, record_id, data) -> Patch:
        """Validate a partial update for ``record_id`` and return it as a Patch."""
        if not isinstance(data, dict):
            raise ValidationError("Record data must be an object")

        status_note = data.get('status_note')
        changes, errors, cleared = self._clean(data, partial=True)
        for field in REQUIRED_FIELDS:
            if field in changes and not changes[field]:
                errors.setdefault(field, 'required')
        if status_note is not None:
            try:
                status_note = self.input_validator.sanitize_string(status_note, LONG_TEXT_MAX)
            except ValueError as e:
                errors['status_note'] = str(e)
        if errors:
            raise ValidationError(f"Invalid update for record {record_id}", errors=errors)

        return Patch(changes, status_note=status_note or None, cleared=cleared)

    def _clean(self, data, partial):
        changes = {}
        errors = {}
        cleared = set()
        for field, value in data.items():
            if field in SERVER_FIELDS or field not in WRITABLE_FIELDS:
                continue
            if value is None:
                if partial:
                    # explicit null clears the field back to its default; a
                    # cleared status is resolved against the stored category
                    changes[field] = record_defaults(data.get('product_category'))[field]
                    cleared.add(field)
                continue
            try:
                changes[field] = self._clean_field(field, value)
            except ValueError as e:
                errors[field] = str(e)
        return changes, errors, cleared

    def _clean_field(self, field, value):
        if field in TEXT_FIELDS:
            if not isinstance(value, str):
                raise ValueError('must be a string')
            max_length = LONG_TEXT_MAX if field in LONG_TEXT_FIELDS else SHORT_TEXT_MAX
            return self.input_validator.sanitize_string(value, max_length)
        if field in AMOUNT_FIELDS:
            amount = self._to_number(value)
            if amount < 0:
                raise ValueError('must not be negative')
            return amount
        if field in SIGNED_AMOUNT_FIELDS:
            return self._to_number(value)
        if field in FLAG_FIELDS:
            if not isinstance(value, bool):
                raise ValueError('must be a boolean')
            return value
        if field == 'product_category':
            if value not in lifecycle.VALID_CATEGORIES:
                raise ValueError(f"must be one of: {', '.join(sorted(lifecycle.VALID_CATEGORIES))}")
            return value
        if field == 'status':
            if value not in lifecycle.VALID_STATUSES:
                raise ValueError(f"must be one of: {', '.join(sorted(lifecycle.VALID_STATUSES))}")
            return value
        if field == 'log_timeline':
            return self._clean_timeline(value)
        if field == 'verification_confirmation':
            return self._clean_verification(value)
        if field == 'product_photo':
            if not isinstance(value, str):
                raise ValueError('must be a string')
            if len(value) > PHOTO_MAX:
                raise ValueError('is too large')
            return value
        raise ValueError('unknown field')

    @staticmethod
    def _to_number(value):
        if isinstance(value, bool):
            raise ValueError('must be a number')
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str) and value.strip():
            try:
                number = float(value.strip())
            except ValueError:
                raise ValueError('must be a number')
        else:
            raise ValueError('must be a number')
        if math.isnan(number) or math.isinf(number):
            raise ValueError('must be a finite number')
        return number

    def _clean_timeline(self, entries):
        if not isinstance(entries, list):
            raise ValueError('must be a list')
        if len(entries) > TIMELINE_MAX:
            raise ValueError('has too many entries')
        cleaned = []
        for entry in entries:
            if not isinstance(entry, dict):
                raise ValueError('entries must be objects')
            item = {}
            for key in lifecycle.TIMELINE_KEYS:
                raw = entry.get(key) or ''
                if not isinstance(raw, str):
                    raise ValueError(f'entry {key} must be a string')
                item[key] = self.input_validator.sanitize_string(raw, LONG_TEXT_MAX)
            cleaned.append(item)
        return lifecycle.clean_timeline(cleaned)

    def _clean_verification(self, value):
        if not isinstance(value, dict):
            raise ValueError('must be an object')
        verified = value.get('verified', False)
        if not isinstance(verified, bool):
            raise ValueError('verified must be a boolean')
        verifier_name = value.get('verifier_name') or ''
        if not isinstance(verifier_name, str):
            raise ValueError('verifier_name must be a string')
        return {
            'verified': verified,
            'verifier_name': self.input_validator.sanitize_string(verifier_name, SHORT_TEXT_MAX),
        }
