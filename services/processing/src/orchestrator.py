"""
Demography processing orchestrator

Main entry point for the bronze to silver demography stage.
Coordinates reading, flattening, and partitioned writing.
"""
import json
import logging
import sys
from datetime import datetime
from typing import Dict, Optional

from pyspark.sql import SparkSession

from datalake.config import PipelineConfig, get_config
from datalake.partitioned_writer import AuditInfo, PartitionedWriter
from datalake.spark import create_spark_session
from datalake.storage import HadoopStorage, StorageLocation

from .flattener import create_flattener
from .reader import BronzeReader

logger = logging.getLogger(__name__)


DEMOGRAPHY_PARTITION_COLS = ["year"]


class DemographyOrchestrator:
    """Orchestrates the demography flattening pipeline"""

    def __init__(
        self,
        spark: SparkSession,
        config: Optional[PipelineConfig] = None,
        storage: Optional[HadoopStorage] = None
    ):
        """
        Initialize orchestrator

        Args:
            spark: SparkSession instance
            config: Pipeline configuration (default: read from environment)
            storage: File-system capability handed to the writer
        """
        self.spark = spark
        self.config = config or get_config()
        self.storage = storage or HadoopStorage(spark)
        logger.info("DemographyOrchestrator initialized")

    def run(
        self,
        data_date: str,
        run_id: str,
        run_date: Optional[datetime] = None
    ) -> Dict[str, any]:
        """
        Process one bronze ingestion slice end-to-end

        Args:
            data_date: Ingestion date selecting the bronze partition
            run_id: Opaque identifier of this invocation
            run_date: Write timestamp for the audit columns (default: now)

        Returns:
            Processing statistics and metrics
        """
        logger.info(f"Starting demography processing: data_date={data_date}, run_id={run_id}")

        start_time = datetime.utcnow()

        try:
            # Step 1: Read
            reader = BronzeReader(
                self.spark, StorageLocation(self.config.bronze_demography_path)
            )
            raw_df = reader.read(data_date)
            read_metrics = reader.validate_data(raw_df)

            # Step 2: Flatten
            flattener = create_flattener(self.config.validate_fill_strategy())
            records = flattener.flatten(raw_df)
            quality_metrics = flattener.compute_quality_metrics()

            logger.info(f"Flatten complete: {quality_metrics['records_out']} records")

            # Step 3: Write to silver
            writer = PartitionedWriter(
                self.spark,
                StorageLocation(self.config.silver_demography_path),
                self.storage
            )
            write_stats = writer.write(
                records,
                DEMOGRAPHY_PARTITION_COLS,
                AuditInfo(run_id=run_id, run_date=run_date, data_date=data_date)
            )
            validation = writer.validate_output()

            end_time = datetime.utcnow()
            duration = (end_time - start_time).total_seconds()

            results = {
                "stage": "demography",
                "data_date": data_date,
                "run_id": run_id,
                "read_metrics": read_metrics,
                "quality_metrics": quality_metrics,
                "write_stats": write_stats,
                "validation": validation,
                "processing_time_seconds": duration,
                "started_at": start_time.isoformat(),
                "completed_at": end_time.isoformat(),
                "status": "success"
            }

            logger.info(f"Processing complete in {duration:.2f}s")
            return results

        except Exception as e:
            logger.error(f"Processing failed: {e}", exc_info=True)

            end_time = datetime.utcnow()
            duration = (end_time - start_time).total_seconds()

            return {
                "stage": "demography",
                "data_date": data_date,
                "run_id": run_id,
                "status": "failed",
                "error_type": type(e).__name__,
                "error": str(e),
                "processing_time_seconds": duration,
                "started_at": start_time.isoformat(),
                "failed_at": end_time.isoformat(),
            }


def main(argv=None):
    """Main entry point for CLI"""
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description="Demography bronze to silver processing")
    parser.add_argument(
        "--data-date",
        required=True,
        help="Ingestion date of the bronze slice to process"
    )
    parser.add_argument(
        "--run-id",
        required=True,
        help="Run identifier recorded in the audit columns"
    )
    parser.add_argument(
        "--spark-master",
        default=None,
        help="Spark master URL (default: from config, else local)"
    )

    args = parser.parse_args(argv)

    config = get_config()
    if args.spark_master:
        config.spark_master = args.spark_master

    spark = create_spark_session(config, "DistrictLake-Demography")

    try:
        orchestrator = DemographyOrchestrator(spark, config)
        results = orchestrator.run(args.data_date, args.run_id)

        print(json.dumps(results, indent=2, default=str))

        if results["status"] == "success":
            sys.exit(0)
        else:
            sys.exit(1)

    finally:
        spark.stop()


if __name__ == "__main__":
    main()
