# hubrecords/records/financials.py
"""Derived money fields of a hub record.

    total_value = processing_fee + additional_cost
    balance     = total_value - amount_paid

A negative balance means the customer overpaid; a positive one is owed.

Recalculation is the guided path: whenever a write changes the fee, the
additional cost or the amount paid, the totals are rebuilt from the merged
values. A write that sets ``total_value`` or ``balance`` explicitly is taken
as a manual correction and stored untouched, even if it disagrees with the
formula.
"""

INPUT_FIELDS = ('processing_fee', 'additional_cost', 'amount_paid')
DERIVED_FIELDS = ('total_value', 'balance')


def recompute(fee, cost, paid):
    """Return ``{'total': fee + cost, 'balance': total - paid}``."""
    total = fee + cost
    return {'total': total, 'balance': total - paid}


def apply_recalculation(changes: dict, current: dict = None) -> dict:
    """Fill in derived totals for a write.

    ``changes`` holds the validated fields being written, ``current`` the
    stored values they are merged over (empty for a new record). The
    returned dict is ``changes`` plus recomputed ``total_value``/``balance``
    when an input moved and neither derived field was set explicitly.
    """
    current = current or {}
    if not any(field in changes for field in INPUT_FIELDS):
        return changes
    if any(field in changes for field in DERIVED_FIELDS):
        return changes

    merged = {field: changes.get(field, current.get(field, 0)) or 0 for field in INPUT_FIELDS}
    result = recompute(merged['processing_fee'], merged['additional_cost'], merged['amount_paid'])

    updated = dict(changes)
    updated['total_value'] = result['total']
    updated['balance'] = result['balance']
    return updated
