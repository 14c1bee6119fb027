"""
Domain package for the migrator.

Exports the Record model transferred from the source to the index and the
row-mapping helper. Keep this package focused on data definitions and
validation concerns.
"""

from sqlindexer.domain.models import Child, Record, record_from_row

__all__ = [
    "Child",
    "Record",
    "record_from_row",
]
