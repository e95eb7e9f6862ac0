"""
Pipeline errors and data-quality issue taxonomy

Row-level problems never raise: the offending row is excluded and counted
under a DataQualityIssue. Structural problems raise a PipelineError and abort
the run before anything is written.
"""
from enum import Enum


class DataQualityIssue(str, Enum):
    """Row-level issues recovered locally and reported as counters"""

    MALFORMED_REGION = "malformed_region"
    NUMERIC_PARSE = "numeric_parse"
    ORPHAN_ROW = "orphan_row"
    MISSING_JOIN_KEY = "missing_join_key"
    UNDEFINED_METRIC = "undefined_metric"


class PipelineError(Exception):
    """Base class for fatal pipeline failures"""


class ConfigurationError(PipelineError):
    """Raised for invalid run parameters or configuration"""


class PartitionNotFoundError(PipelineError):
    """Raised when a requested input partition yields zero rows"""

    def __init__(self, location: str, predicate: str):
        self.location = location
        self.predicate = predicate
        super().__init__(f"No rows found in {location} for {predicate}")


class PartitionWriteError(PipelineError):
    """Raised when staging or promoting an output partition fails"""
