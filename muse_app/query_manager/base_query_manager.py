from abc import ABC, abstractmethod
from typing import List
from muse_app.intelligence_engine.data_structures import MetricRecord

class BaseQueryManager(ABC):
    """
    An abstract class that describes the common interface for a Query Manager:
    something that can produce a dataset of MetricRecords.
    """

    @abstractmethod
    def fetch_records(self, source: str) -> List[MetricRecord]:
        """
        Return every record in `source`, in source order.
        Records are immutable; callers must not rely on the source being re-read.
        """
        pass
