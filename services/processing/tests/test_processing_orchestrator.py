"""
End-to-end tests for the demography processing stage
"""
from datetime import datetime

import pytest
from pyspark.sql import functions as F

from datalake.config import PipelineConfig
from processing.orchestrator import DemographyOrchestrator, main
from processing.reader import RAW_DEMOGRAPHY_SCHEMA


@pytest.fixture
def lake_config(spark, sample_raw_rows, tmp_path):
    config = PipelineConfig(
        bronze_path=str(tmp_path / "bronze"),
        silver_path=str(tmp_path / "silver"),
        gold_path=str(tmp_path / "gold"),
    )
    (
        spark.createDataFrame(sample_raw_rows, RAW_DEMOGRAPHY_SCHEMA)
        .coalesce(1)
        .write.parquet(f"{config.bronze_demography_path}/data_date=2024-03-01")
    )
    return config


def _silver(spark, config):
    return spark.read.parquet(config.silver_demography_path)


def test_run_writes_silver_by_year(spark, lake_config, expected_records):
    orchestrator = DemographyOrchestrator(spark, lake_config)
    run_date = datetime(2024, 3, 2, 8, 30)

    results = orchestrator.run("2024-03-01", "run-1", run_date=run_date)

    assert results["status"] == "success"
    assert results["quality_metrics"]["records_out"] == 3
    assert results["write_stats"]["partitions_written"] == ["year=2020", "year=2021"]
    assert results["validation"]["total_rows"] == 3

    silver = _silver(spark, lake_config)
    rows = sorted(
        tuple(row) for row in
        silver.select("zip", "district", "year", "men", "women", "total").collect()
    )
    assert rows == sorted(expected_records)

    audit = silver.select("run_id", "run_date", "data_date").distinct().collect()
    assert [tuple(row) for row in audit] == [("run-1", run_date, "2024-03-01")]


def test_rerun_replaces_instead_of_appending(spark, lake_config):
    orchestrator = DemographyOrchestrator(spark, lake_config)

    orchestrator.run("2024-03-01", "run-1")
    results = orchestrator.run("2024-03-01", "run-2")

    assert results["write_stats"]["partitions_replaced"] == 2

    silver = _silver(spark, lake_config)
    assert silver.count() == 3
    assert silver.filter(F.col("run_id") == "run-1").count() == 0


@pytest.mark.parametrize("strategy", ["window", "two_phase"])
def test_fill_strategy_from_config(spark, lake_config, strategy):
    lake_config.fill_strategy = strategy

    results = DemographyOrchestrator(spark, lake_config).run("2024-03-01", "run-1")

    assert results["status"] == "success"
    assert results["quality_metrics"]["records_out"] == 3


def test_missing_slice_fails_before_writing(spark, lake_config):
    orchestrator = DemographyOrchestrator(spark, lake_config)

    results = orchestrator.run("2030-01-01", "run-1")

    assert results["status"] == "failed"
    assert results["error_type"] == "PartitionNotFoundError"
    assert "write_stats" not in results


def test_cli_requires_run_parameters():
    with pytest.raises(SystemExit) as excinfo:
        main(["--data-date", "2024-03-01"])

    assert excinfo.value.code == 2
