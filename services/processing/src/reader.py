"""
Bronze demography reader

Reads the raw demography rows for one ingestion slice from the bronze zone.
Rows come back in file order (a slice is landed as a single file by the
spreadsheet conversion), and nothing here may shuffle them because the
district hierarchy is encoded only by row position.
"""
import logging
from typing import Dict

from pyspark.sql import SparkSession, DataFrame
from pyspark.sql import functions as F
from pyspark.sql.types import StructType, StructField, StringType

from datalake.errors import PartitionNotFoundError
from datalake.storage import StorageLocation

logger = logging.getLogger(__name__)


RAW_DEMOGRAPHY_SCHEMA = StructType([
    StructField("region", StringType(), True),
    StructField("men", StringType(), True),
    StructField("women", StringType(), True),
])


class BronzeReader:
    """Reader for raw demography rows partitioned by ingestion date"""

    def __init__(self, spark: SparkSession, location: StorageLocation):
        """
        Initialize reader

        Args:
            spark: SparkSession instance
            location: Bronze dataset root (partitioned by data_date)
        """
        self.spark = spark
        self.location = location
        logger.info(f"Initialized BronzeReader for {location.root}")

    def read(self, data_date: str) -> DataFrame:
        """
        Read the rows of a single ingestion slice

        Args:
            data_date: Ingestion date identifying the bronze partition

        Returns:
            DataFrame with region, men, women in source order

        Raises:
            PartitionNotFoundError: If the slice holds no rows
        """
        path = self.location.path()
        logger.info(f"Reading bronze demography: {path} (data_date={data_date})")

        df = (
            self.spark.read.parquet(path)
            .where(F.col("data_date").cast("string") == data_date)
            .select(*[
                F.col(field.name).cast("string").alias(field.name)
                for field in RAW_DEMOGRAPHY_SCHEMA.fields
            ])
        )

        row_count = df.count()
        if row_count == 0:
            raise PartitionNotFoundError(path, f"data_date = '{data_date}'")

        logger.info(f"Read {row_count} raw rows for data_date={data_date}")
        return df

    def validate_data(self, df: DataFrame) -> Dict[str, any]:
        """
        Collect basic metrics on the raw slice

        Args:
            df: Raw DataFrame returned by read()

        Returns:
            Dictionary with row and null counts
        """
        stats = df.agg(
            F.count(F.lit(1)).alias("total_rows"),
            F.sum(F.col("region").isNull().cast("int")).alias("null_region"),
            F.sum(F.col("men").isNull().cast("int")).alias("null_men"),
            F.sum(F.col("women").isNull().cast("int")).alias("null_women"),
        ).collect()[0]

        metrics = {
            "total_rows": stats["total_rows"],
            "null_counts": {
                "region": stats["null_region"] or 0,
                "men": stats["null_men"] or 0,
                "women": stats["null_women"] or 0,
            },
        }

        logger.info(f"Raw slice metrics: {metrics}")
        return metrics
