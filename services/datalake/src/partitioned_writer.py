"""
Partitioned writer

Writes DataFrames to parquet with dynamic partition overwrite: only the
partitions present in the incoming batch are replaced, each one swapped in
atomically from a hidden staging directory so readers never observe a
partition holding a mix of old and new files.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql import functions as F

from .errors import ConfigurationError, PartitionWriteError
from .storage import HadoopStorage, StorageLocation

logger = logging.getLogger(__name__)


AUDIT_COLUMNS = ("run_id", "run_date", "data_date")


@dataclass(frozen=True)
class AuditInfo:
    """Audit payload stamped on every written row"""

    run_id: str
    run_date: Optional[datetime] = None
    data_date: Optional[str] = None


def add_audit_columns(df: DataFrame, audit: AuditInfo) -> DataFrame:
    """
    Append audit columns to a DataFrame

    Args:
        df: Dataset to be written
        audit: Run identifier, write timestamp and source data date

    Returns:
        DataFrame with run_id, run_date and (if given) data_date columns
    """
    df = df.withColumn("run_id", F.lit(audit.run_id))

    if audit.data_date is not None:
        df = df.withColumn("data_date", F.lit(audit.data_date))

    if audit.run_date is not None:
        df = df.withColumn("run_date", F.lit(audit.run_date).cast("timestamp"))
    else:
        df = df.withColumn("run_date", F.current_timestamp())

    return df


class PartitionedWriter:
    """Write a dataset under a partition scheme with partition-scoped overwrite"""

    def __init__(
        self,
        spark: SparkSession,
        location: StorageLocation,
        storage: Optional[HadoopStorage] = None
    ):
        """
        Initialize partitioned writer

        Args:
            spark: SparkSession instance
            location: Dataset root to write under
            storage: File-system capability (default: Hadoop FS of the session)
        """
        self.spark = spark
        self.location = location
        self.storage = storage or HadoopStorage(spark)
        self.output_path = location.path()

        logger.info(f"Initialized PartitionedWriter: path={self.output_path}")

    def write(
        self,
        df: DataFrame,
        partition_cols: List[str],
        audit: AuditInfo
    ) -> Dict[str, any]:
        """
        Replace the partitions present in df, leaving all others untouched

        Args:
            df: Dataset to persist
            partition_cols: Columns defining the partition directories
            audit: Audit payload added to every row

        Returns:
            Dictionary with write statistics
        """
        if not partition_cols:
            raise ConfigurationError("At least one partition column is required")

        missing_cols = [c for c in partition_cols if c not in df.columns]
        if missing_cols:
            raise ConfigurationError(
                f"Partition columns {missing_cols} not found in DataFrame"
            )

        df = add_audit_columns(df, audit)

        null_condition = None
        for col_name in partition_cols:
            condition = F.col(col_name).isNull()
            if null_condition is None:
                null_condition = condition
            else:
                null_condition = null_condition | condition

        null_partitions = df.filter(null_condition).count()
        if null_partitions:
            raise PartitionWriteError(
                f"{null_partitions} rows have null values in partition columns "
                f"{partition_cols}"
            )

        row_count = df.count()
        stats = {
            "output_path": self.output_path,
            "rows_written": row_count,
            "partition_cols": list(partition_cols),
            "partitions_written": [],
            "partitions_replaced": 0,
            "run_id": audit.run_id,
            "written_at": datetime.utcnow().isoformat(),
        }

        if row_count == 0:
            logger.warning("Empty batch, no partitions replaced")
            return stats

        token = uuid.uuid4().hex[:8]
        staging_path = self.location.path(f"_staging-{token}")
        backup_path = self.location.path(f"_backup-{token}")

        logger.info(
            f"Writing {row_count} rows to {self.output_path}, "
            f"partitioned by {partition_cols} (staging: {staging_path})"
        )

        try:
            try:
                df.write.parquet(
                    staging_path,
                    mode="overwrite",
                    partitionBy=list(partition_cols),
                    compression="snappy"
                )
            except Exception as e:
                logger.error(f"Failed to stage batch at {staging_path}: {e}")
                raise PartitionWriteError(f"Staging write failed: {e}") from e

            partitions = self._list_partitions(staging_path, len(partition_cols))
            replaced = self._promote(partitions, staging_path, backup_path)
        finally:
            self.storage.delete(staging_path)

        stats["partitions_written"] = partitions
        stats["partitions_replaced"] = replaced
        logger.info(f"Write complete: {stats}")
        return stats

    def _list_partitions(self, root: str, depth: int) -> List[str]:
        """Relative partition directories (e.g. 'year=2020/quarter=1') under root"""
        partitions = [""]
        for _ in range(depth):
            partitions = [
                f"{prefix}/{name}" if prefix else name
                for prefix in partitions
                for name in self.storage.list_dirs(
                    f"{root}/{prefix}" if prefix else root
                )
                if "=" in name and not name.startswith(("_", "."))
            ]
        return partitions

    def _promote(self, partitions: List[str], staging_path: str, backup_path: str) -> int:
        """
        Swap each staged partition into place

        The previous content of a partition is moved aside first and only
        deleted once every partition of the batch has been promoted. Any
        failure restores all partitions touched so far.

        Returns:
            Number of partitions that replaced existing data
        """
        # Each partition is listed here before its first rename
        touched: List[Tuple[str, bool]] = []

        for partition in partitions:
            target = self.location.path(partition)
            staged = f"{staging_path}/{partition}"
            backup = f"{backup_path}/{partition}"

            try:
                had_previous = self.storage.exists(target)
                touched.append((partition, had_previous))
                if had_previous and not self.storage.rename(target, backup):
                    raise PartitionWriteError(f"Could not move {target} aside")
                if not self.storage.rename(staged, target):
                    raise PartitionWriteError(f"Could not promote {staged} to {target}")
            except Exception as e:
                logger.error(f"Promotion of partition {partition} failed: {e}")
                self._rollback(touched, backup_path)
                if isinstance(e, PartitionWriteError):
                    raise
                raise PartitionWriteError(f"Promotion of {partition} failed: {e}") from e

            logger.debug(f"Promoted partition {partition} (replaced={had_previous})")

        self.storage.delete(backup_path)
        return sum(1 for _, had_previous in touched if had_previous)

    def _rollback(self, touched: List[Tuple[str, bool]], backup_path: str) -> None:
        """
        Put back the previous content of every partition touched by this write

        The backup directory is removed only when every restore succeeded.
        """
        restored = True
        for partition, had_previous in reversed(touched):
            target = self.location.path(partition)
            backup = f"{backup_path}/{partition}"
            try:
                if had_previous and not self.storage.exists(backup):
                    # never moved aside, target still holds the previous data
                    continue
                self.storage.delete(target)
                if had_previous and not self.storage.rename(backup, target):
                    restored = False
                    logger.error(f"Could not restore {target} from {backup}")
            except Exception as e:
                restored = False
                logger.error(f"Could not restore {target} from {backup}: {e}", exc_info=True)

        if restored:
            self.storage.delete(backup_path)
        else:
            logger.error(f"Previous partition data kept at {backup_path}")

    def validate_output(self) -> Dict[str, any]:
        """
        Read back the dataset and compute basic statistics

        Returns:
            Validation metrics
        """
        logger.info(f"Validating output at {self.output_path}")

        if not self.storage.exists(self.output_path):
            logger.warning(f"Nothing written yet at {self.output_path}")
            return {"output_path": self.output_path, "total_rows": 0, "columns": []}

        df = self.spark.read.parquet(self.output_path)

        metrics = {
            "output_path": self.output_path,
            "total_rows": df.count(),
            "columns": df.columns,
            "missing_audit_columns": [c for c in AUDIT_COLUMNS if c not in df.columns],
        }

        if "run_id" in df.columns:
            metrics["distinct_run_ids"] = df.select("run_id").distinct().count()

        logger.info(f"Validation metrics: {metrics}")
        return metrics
