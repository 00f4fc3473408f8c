from .ingest import ingest_node
from .profile import profile_node
from .validate import validate_node
from .analyze import analyze_node
from .report import report_node
from .finalize import finalize_node

__all__ = [
    "ingest_node",
    "profile_node",
    "validate_node",
    "analyze_node",
    "report_node",
    "finalize_node",
]
