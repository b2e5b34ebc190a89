"""
Signals emitted by the business unit hierarchy.

``business_unit_deleting`` fires before a business unit is soft deleted so
that receivers (the role lifecycle) can tear down what the unit owns while
it is still resolvable. Receivers get ``business_unit_id``.
"""
from django.dispatch import Signal

business_unit_deleting = Signal()
