from eventstore.services.export import export_records
from eventstore.services.queue import TaskQueue

__all__ = [
    "export_records",
    "TaskQueue",
]
