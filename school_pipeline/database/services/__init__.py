from .school_details import SchoolDetailStore
from .statistics import SchoolStatisticStore

__all__ = ["SchoolDetailStore", "SchoolStatisticStore"]
