from __future__ import annotations

"""Base exception for the vehicle list tool.

Concrete errors live next to the code that raises them (InputError in the
excel reader, IngestBatchError in the batch upserter, ...) and derive from this.
"""


class VehicleListError(Exception):
    """Base exception for vehicle list processing errors."""
    pass
