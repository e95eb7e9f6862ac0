"""
Silver zone readers for the integration stage.
"""
import logging

from pyspark.sql import SparkSession, DataFrame
from pyspark.sql import functions as F

from datalake.errors import ConfigurationError, PartitionNotFoundError
from datalake.storage import StorageLocation

logger = logging.getLogger(__name__)


ALL_QUARTERS = -1

DEMOGRAPHY_JOIN_COLUMNS = ["zip", "men", "women", "total"]


def validate_period(year: int, quarter: int = ALL_QUARTERS) -> None:
    """Reject periods no silver partition can match."""
    if year < 1000 or year > 9999:
        raise ConfigurationError(f"Year must have four digits, got {year}")
    if quarter != ALL_QUARTERS and quarter not in (1, 2, 3, 4):
        raise ConfigurationError(
            f"Quarter must be 1-4 or {ALL_QUARTERS} for all quarters, got {quarter}"
        )


class SilverReader:
    """Reads the structured crime and demography datasets for one period."""

    def __init__(
        self,
        spark: SparkSession,
        crime_location: StorageLocation,
        demography_location: StorageLocation,
        quarter_column: str = "quarter"
    ):
        """
        Initialize reader.

        Args:
            spark: Active SparkSession
            crime_location: Silver crime dataset root (partitioned by year, quarter)
            demography_location: Silver demography dataset root (partitioned by year)
            quarter_column: Name of the crime quarter column
        """
        self.spark = spark
        self.crime_location = crime_location
        self.demography_location = demography_location
        self.quarter_column = quarter_column

    def read_crime(self, year: int, quarter: int = ALL_QUARTERS) -> DataFrame:
        """
        Load crime records for a year and, optionally, a single quarter.

        Args:
            year: Year to load
            quarter: Quarter (1-4), or -1 for the whole year

        Returns:
            DataFrame with the crime records of the period

        Raises:
            PartitionNotFoundError: If the period holds no crime rows
        """
        validate_period(year, quarter)

        path = self.crime_location.path()
        condition = F.col("year") == year
        predicate = f"year = {year}"
        if quarter != ALL_QUARTERS:
            condition = condition & (F.col(self.quarter_column) == quarter)
            predicate += f" AND {self.quarter_column} = {quarter}"

        df = self.spark.read.parquet(path).where(condition)

        row_count = df.count()
        if row_count == 0:
            raise PartitionNotFoundError(path, predicate)

        logger.info(f"Loaded {row_count} crime rows ({predicate})")
        return df

    def read_demography(self, year: int) -> DataFrame:
        """
        Load the flattened demography records of a year.

        Returns:
            DataFrame with columns: zip, men, women, total

        Raises:
            PartitionNotFoundError: If the year holds no demography rows
        """
        validate_period(year)

        path = self.demography_location.path()
        df = (
            self.spark.read.parquet(path)
            .where(F.col("year") == year)
            .select(*DEMOGRAPHY_JOIN_COLUMNS)
        )

        row_count = df.count()
        if row_count == 0:
            raise PartitionNotFoundError(path, f"year = {year}")

        logger.info(f"Loaded {row_count} demography rows (year = {year})")
        return df
