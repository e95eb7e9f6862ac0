"""
Orchestration and CLI for the crime/demography integration.

This module coordinates the silver to gold pipeline:
1. Create Spark session with access to the lake
2. Load silver crime records for the year (and quarter) and silver demography
3. Join on zip and compute crime incidence
4. Write to the gold table with partition-scoped overwrite
5. Collect and report metrics
"""
import argparse
import json
import logging
import sys
import time
from datetime import datetime
from typing import Any, Dict, Optional

from pyspark.sql import SparkSession

from datalake.config import PipelineConfig
from datalake.partitioned_writer import AuditInfo, PartitionedWriter
from datalake.spark import create_spark_session
from datalake.storage import HadoopStorage, StorageLocation

from .integrator import CrimeDemographyIntegrator
from .reader import ALL_QUARTERS, SilverReader


logger = logging.getLogger(__name__)


class IntegrationOrchestrator:
    """Orchestrates the crime/demography integration pipeline."""

    def __init__(self, config: PipelineConfig, spark: Optional[SparkSession] = None):
        """
        Initialize orchestrator.

        Args:
            config: Configuration object
            spark: Existing SparkSession (default: created by setup_components)
        """
        self.config = config
        self.spark: Optional[SparkSession] = spark
        self.reader: Optional[SilverReader] = None
        self.integrator: Optional[CrimeDemographyIntegrator] = None
        self.writer: Optional[PartitionedWriter] = None

    def setup_components(self):
        """Initialize all pipeline components."""
        if self.spark is None:
            self.spark = create_spark_session(self.config, "DistrictLake-Integration")

        self.reader = SilverReader(
            self.spark,
            crime_location=StorageLocation(self.config.silver_crime_path),
            demography_location=StorageLocation(self.config.silver_demography_path),
            quarter_column=self.config.quarter_column
        )
        self.integrator = CrimeDemographyIntegrator(self.config.crime_count_column)
        self.writer = PartitionedWriter(
            self.spark,
            StorageLocation(self.config.gold_integrated_path),
            HadoopStorage(self.spark)
        )

    @property
    def partition_cols(self):
        return ["year", self.config.quarter_column]

    def run(
        self,
        year: int,
        quarter: int,
        data_date: str,
        run_id: str,
        run_date: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Run the complete integration for a year or a single quarter.

        Args:
            year: Year
            quarter: Quarter (1-4), or -1 for every quarter of the year
            data_date: Source ingestion slice recorded in the audit columns
            run_id: Opaque identifier of this invocation
            run_date: Write timestamp for the audit columns (default: now)

        Returns:
            Dictionary with pipeline metrics and status
        """
        if self.writer is None:
            self.setup_components()

        start_time = time.time()
        period = f"{year}" if quarter == ALL_QUARTERS else f"{year}Q{quarter}"

        logger.info(f"Starting integration: {period} (data_date={data_date}, run_id={run_id})")

        metrics = {
            "stage": "integration",
            "year": year,
            "quarter": quarter,
            "data_date": data_date,
            "run_id": run_id,
            "status": "running",
            "start_time": datetime.utcnow().isoformat(),
        }

        joined_df = None
        try:
            crime_df = self.reader.read_crime(year, quarter)
            demography_df = self.reader.read_demography(year)

            logger.info("Joining crime and demography...")
            joined_df = self.integrator.integrate(crime_df, demography_df)

            # Cache the DataFrame for counting and writing
            joined_df.cache()

            metrics["quality_metrics"] = self.integrator.compute_quality_metrics()

            logger.info("Writing integrated records to gold...")
            write_stats = self.writer.write(
                joined_df,
                self.partition_cols,
                AuditInfo(run_id=run_id, run_date=run_date, data_date=data_date)
            )
            metrics["write_stats"] = write_stats
            metrics["validation"] = self.writer.validate_output()

            elapsed_time = time.time() - start_time
            metrics["elapsed_seconds"] = round(elapsed_time, 2)
            metrics["status"] = "success"
            metrics["end_time"] = datetime.utcnow().isoformat()

            logger.info(
                f"Integration completed successfully in {elapsed_time:.2f}s: "
                f"{write_stats['rows_written']} rows written"
            )

        except Exception as e:
            elapsed_time = time.time() - start_time
            metrics["elapsed_seconds"] = round(elapsed_time, 2)
            metrics["status"] = "failed"
            metrics["error_type"] = type(e).__name__
            metrics["error"] = str(e)
            metrics["end_time"] = datetime.utcnow().isoformat()

            logger.error(f"Integration failed: {e}", exc_info=True)
            raise

        finally:
            if joined_df is not None:
                joined_df.unpersist()

        return metrics

    def cleanup(self):
        """Clean up resources."""
        if self.spark:
            logger.info("Stopping Spark session...")
            self.spark.stop()


def main(argv=None):
    """CLI entry point for the integration stage."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )

    parser = argparse.ArgumentParser(
        description="Join silver crime and demography into the gold table"
    )
    parser.add_argument("--year", type=int, required=True, help="Year to integrate")
    parser.add_argument(
        "--quarter",
        type=int,
        default=ALL_QUARTERS,
        help="Quarter (1-4); -1 integrates the whole year (default: -1)"
    )
    parser.add_argument(
        "--data-date",
        required=True,
        help="Source ingestion slice recorded in the audit columns"
    )
    parser.add_argument(
        "--run-id",
        required=True,
        help="Run identifier recorded in the audit columns"
    )

    args = parser.parse_args(argv)

    orchestrator = IntegrationOrchestrator(PipelineConfig())

    try:
        orchestrator.setup_components()
        result = orchestrator.run(args.year, args.quarter, args.data_date, args.run_id)
        print(json.dumps(result, indent=2, default=str))
        sys.exit(0)
    except Exception as e:
        logger.error(f"Integration failed: {e}")
        sys.exit(1)
    finally:
        orchestrator.cleanup()


if __name__ == "__main__":
    main()
