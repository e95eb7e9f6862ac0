"""
Demography hierarchy flattening

The bronze demography sheet encodes districts and yearly readings in a single
`region` column: a "ZIP NAME" row is followed by one "YYYY-MM-DD" row per
reading year, then the next district starts. This module recovers the district
for every reading by forward filling over the original row order and parses
the readings into flat, self-contained records.
"""
import logging
from typing import Dict, Optional

from pyspark.sql import DataFrame
from pyspark.sql import functions as F
from pyspark.sql.window import Window

from datalake.config import FILL_STRATEGIES
from datalake.errors import ConfigurationError, DataQualityIssue

logger = logging.getLogger(__name__)


# Zip must open the text; only that occurrence is removed from the name
HEADER_PATTERN = r"^\s*(\d{5})(?!\d)\s*(.*?)\s*$"
DATE_PATTERN = r"^\s*(\d{4})-\d{2}-\d{2}"
# At most 18 digits, which always fits a signed long
COUNT_PATTERN = r"^\d{1,18}$"

ROW_HEADER = "header"
ROW_DATA = "data"
ROW_MALFORMED = "malformed"

FLATTENED_COLUMNS = ["zip", "district", "year", "men", "women", "total"]

ISSUE_COUNTERS = [
    DataQualityIssue.MALFORMED_REGION,
    DataQualityIssue.NUMERIC_PARSE,
    DataQualityIssue.ORPHAN_ROW,
]


class HierarchyFlattener:
    """Turns order-encoded district/reading rows into flat records"""

    def __init__(self, fill_strategy: str = "two_phase"):
        """
        Initialize flattener

        Args:
            fill_strategy: 'window' (one global ordered window) or
                'two_phase' (per-shard scan plus carry propagation)
        """
        if fill_strategy not in FILL_STRATEGIES:
            raise ConfigurationError(
                f"Unknown fill strategy: {fill_strategy}. "
                f"Must be one of {list(FILL_STRATEGIES)}"
            )

        self.fill_strategy = fill_strategy
        self._annotated: Optional[DataFrame] = None
        logger.info(f"Initialized HierarchyFlattener, fill strategy: {fill_strategy}")

    def flatten(self, df: DataFrame) -> DataFrame:
        """
        Main flattening pipeline

        Args:
            df: Raw rows (region, men, women) in source order

        Returns:
            DataFrame of flattened records (zip, district, year, men, women,
            total) in source order
        """
        logger.info("Starting hierarchy flattening")

        df = self._assign_serial(df)
        df = self._classify(df)
        df = self._forward_fill(df)
        df = self._parse_readings(df)
        df = self._flag_issues(df)

        self._annotated = df

        records = (
            df.filter(
                (F.col("row_kind") == ROW_DATA) & F.col("issue").isNull()
            )
            .orderBy("serial")
            .select(*FLATTENED_COLUMNS)
        )

        logger.info("Hierarchy flattening complete")
        return records

    def _assign_serial(self, df: DataFrame) -> DataFrame:
        """
        Attach the row order before anything can shuffle the rows

        The serial and the shard it was assigned in are materialized once,
        so every later branch of the plan sees the same values.
        """
        df = df.select(
            "*",
            F.monotonically_increasing_id().alias("serial"),
            F.spark_partition_id().alias("shard"),
        )
        return df.localCheckpoint(eager=True)

    def _classify(self, df: DataFrame) -> DataFrame:
        """
        Split header rows from reading rows

        Header rows get their zip and district packed into a single struct so
        both values are always carried forward together.
        """
        region = F.col("region")

        df = df.withColumn(
            "row_kind",
            F.when(region.rlike(HEADER_PATTERN), F.lit(ROW_HEADER))
            .when(region.rlike(DATE_PATTERN), F.lit(ROW_DATA))
            .otherwise(F.lit(ROW_MALFORMED))
        )

        df = df.withColumn(
            "header",
            F.when(
                F.col("row_kind") == ROW_HEADER,
                F.struct(
                    F.regexp_extract(region, HEADER_PATTERN, 1).alias("zip"),
                    F.regexp_extract(region, HEADER_PATTERN, 2).alias("district"),
                )
            )
        )

        return df

    def _forward_fill(self, df: DataFrame) -> DataFrame:
        """Assign every row the nearest header at or before it by serial"""
        if self.fill_strategy == "window":
            return self._fill_global_window(df)
        return self._fill_two_phase(df)

    def _fill_global_window(self, df: DataFrame) -> DataFrame:
        window = (
            Window.orderBy("serial")
            .rowsBetween(Window.unboundedPreceding, Window.currentRow)
        )
        return df.withColumn("parent", F.last("header", ignorenulls=True).over(window))

    def _fill_two_phase(self, df: DataFrame) -> DataFrame:
        """
        Forward fill as a local scan per shard followed by a carry pass

        1. Within each shard, carry the last header seen so far.
        2. Reduce every shard to its last header (by serial).
        3. The carry into shard s is the last non-null tail of shards < s.
        4. Rows with no header earlier in their own shard take the carry.

        Shards are ordered by serial, so this matches one sequential scan.
        """
        local_window = (
            Window.partitionBy("shard")
            .orderBy("serial")
            .rowsBetween(Window.unboundedPreceding, Window.currentRow)
        )
        local = df.withColumn(
            "local_parent", F.last("header", ignorenulls=True).over(local_window)
        )

        shard_tails = df.groupBy("shard").agg(
            F.max(
                F.when(
                    F.col("header").isNotNull(),
                    F.struct(F.col("serial"), F.col("header").alias("header"))
                )
            ).alias("tail")
        )

        carry_window = (
            Window.orderBy("shard")
            .rowsBetween(Window.unboundedPreceding, -1)
        )
        carries = shard_tails.select(
            "shard",
            F.last(F.col("tail.header"), ignorenulls=True).over(carry_window).alias("carry")
        )

        return (
            local.join(F.broadcast(carries), on="shard", how="left")
            .withColumn("parent", F.coalesce(F.col("local_parent"), F.col("carry")))
            .drop("local_parent", "carry")
        )

    def _parse_readings(self, df: DataFrame) -> DataFrame:
        """
        Resolve zip, district and year and normalize the population counts

        Counts use '.' as thousands separator; after stripping it the value
        must be all digits. Longer values are parse failures rather than
        casts, since an overflowing cast raises under ANSI mode.
        """
        df = df.withColumn("zip", F.col("parent.zip"))
        df = df.withColumn("district", F.col("parent.district"))

        df = df.withColumn(
            "year",
            F.when(
                F.col("row_kind") == ROW_DATA,
                F.regexp_extract(F.col("region"), DATE_PATTERN, 1).cast("int")
            )
        )

        for col_name in ("men", "women"):
            cleaned = F.trim(F.regexp_replace(F.col(col_name), r"\.", ""))
            df = df.withColumn(
                col_name,
                F.when(cleaned.rlike(COUNT_PATTERN), cleaned.cast("long"))
            )

        df = df.withColumn("total", F.col("men") + F.col("women"))
        return df

    def _flag_issues(self, df: DataFrame) -> DataFrame:
        """Tag each excluded row with the data-quality issue that excluded it"""
        kind = F.col("row_kind")

        df = df.withColumn(
            "issue",
            F.when(kind == ROW_MALFORMED, F.lit(DataQualityIssue.MALFORMED_REGION.value))
            .when(
                (kind == ROW_HEADER) & (F.col("header.district") == ""),
                F.lit(DataQualityIssue.MALFORMED_REGION.value)
            )
            .when(
                (kind == ROW_DATA)
                & (F.col("zip").isNull() | (F.col("district") == "")),
                F.lit(DataQualityIssue.ORPHAN_ROW.value)
            )
            .when(
                (kind == ROW_DATA)
                & (F.col("men").isNull() | F.col("women").isNull()),
                F.lit(DataQualityIssue.NUMERIC_PARSE.value)
            )
        )

        return df

    def compute_quality_metrics(self) -> Dict[str, int]:
        """
        Count rows per kind and per exclusion reason for the last flatten()

        Returns:
            Dictionary with total_rows, header_rows, data_rows, records_out
            and one counter per data-quality issue
        """
        if self._annotated is None:
            raise RuntimeError("flatten() must be called before computing metrics")

        logger.info("Computing flattening quality metrics")

        kind = F.col("row_kind")
        issue = F.col("issue")

        aggregates = [
            F.count(F.lit(1)).alias("total_rows"),
            F.sum((kind == ROW_HEADER).cast("int")).alias("header_rows"),
            F.sum((kind == ROW_DATA).cast("int")).alias("data_rows"),
            F.sum(((kind == ROW_DATA) & issue.isNull()).cast("int")).alias("records_out"),
        ]
        for counter in ISSUE_COUNTERS:
            aggregates.append(
                F.sum(F.coalesce((issue == counter.value).cast("int"), F.lit(0)))
                .alias(counter.value)
            )

        row = self._annotated.agg(*aggregates).collect()[0]
        metrics = {key: int(value or 0) for key, value in row.asDict().items()}

        for counter in ISSUE_COUNTERS:
            if metrics[counter.value]:
                logger.warning(
                    f"Excluded {metrics[counter.value]} rows: {counter.value}"
                )

        logger.info(f"Flattening metrics: {metrics}")
        return metrics


def create_flattener(fill_strategy: str = "two_phase") -> HierarchyFlattener:
    """
    Factory function to create a flattener instance

    Args:
        fill_strategy: Forward-fill strategy ('window' or 'two_phase')

    Returns:
        HierarchyFlattener instance
    """
    return HierarchyFlattener(fill_strategy)
