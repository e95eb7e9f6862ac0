"""
End-to-end tests for the integration stage.
"""
import os
from datetime import datetime

import pytest
from pyspark.sql import functions as F

from datalake.errors import PartitionNotFoundError, PartitionWriteError
from integration.orchestrator import IntegrationOrchestrator
from integration.reader import ALL_QUARTERS


@pytest.fixture
def orchestrator(spark, lake_config):
    orchestrator = IntegrationOrchestrator(lake_config, spark)
    orchestrator.setup_components()
    return orchestrator


def _gold(spark, config):
    return spark.read.parquet(config.gold_integrated_path)


def test_run_whole_year(spark, lake_config, orchestrator):
    run_date = datetime(2024, 4, 1, 6, 0)

    metrics = orchestrator.run(2020, ALL_QUARTERS, "2024-03-01", "run-1", run_date=run_date)

    assert metrics["status"] == "success"
    assert metrics["write_stats"]["partitions_written"] == ["year=2020/quarter=1", "year=2020/quarter=2"]
    assert metrics["quality_metrics"]["unmatched_crime_zips"] == 1
    assert metrics["validation"]["total_rows"] == 4

    gold = _gold(spark, lake_config)
    assert gold.count() == 4

    barcelona = gold.filter((F.col("zip") == "08001") & (F.col("quarter") == 1)).first()
    assert barcelona["crime_incidence"] == 2.0
    assert barcelona["total"] == 250700
    assert barcelona["run_id"] == "run-1"
    assert barcelona["data_date"] == "2024-03-01"
    assert barcelona["run_date"] == run_date


def test_quarter_rerun_keeps_other_partitions(spark, lake_config, orchestrator):
    orchestrator.run(2020, ALL_QUARTERS, "2024-03-01", "run-1")
    orchestrator.run(2021, ALL_QUARTERS, "2024-03-01", "run-1")

    metrics = orchestrator.run(2020, 2, "2024-03-02", "run-2")

    assert metrics["write_stats"]["partitions_written"] == ["year=2020/quarter=2"]

    gold = _gold(spark, lake_config)
    run_ids = {
        (row["year"], row["quarter"]): row["run_id"]
        for row in gold.select("year", "quarter", "run_id").distinct().collect()
    }
    assert run_ids == {
        (2020, 1): "run-1",
        (2020, 2): "run-2",
        (2021, 1): "run-1",
    }
    assert gold.count() == 5


def test_rerun_is_idempotent(spark, lake_config, orchestrator):
    orchestrator.run(2020, ALL_QUARTERS, "2024-03-01", "run-1")
    first = sorted(
        [tuple(row) for row in _gold(spark, lake_config)
         .drop("run_id", "run_date", "data_date").collect()],
        key=repr
    )

    orchestrator.run(2020, ALL_QUARTERS, "2024-03-01", "run-2")
    second = sorted(
        [tuple(row) for row in _gold(spark, lake_config)
         .drop("run_id", "run_date", "data_date").collect()],
        key=repr
    )

    assert first == second


def test_missing_period_raises_before_write(spark, lake_config, orchestrator):
    with pytest.raises(PartitionNotFoundError):
        orchestrator.run(2019, ALL_QUARTERS, "2024-03-01", "run-1")

    assert not os.path.exists(lake_config.gold_integrated_path)


def test_failed_write_releases_cached_join(lake_config, orchestrator, monkeypatch):
    joined = []
    integrate = orchestrator.integrator.integrate

    def capture(crime_df, demography_df):
        df = integrate(crime_df, demography_df)
        joined.append(df)
        return df

    def fail(*args, **kwargs):
        raise PartitionWriteError("Staging write failed: disk full")

    monkeypatch.setattr(orchestrator.integrator, "integrate", capture)
    monkeypatch.setattr(orchestrator.writer, "write", fail)

    with pytest.raises(PartitionWriteError):
        orchestrator.run(2020, ALL_QUARTERS, "2024-03-01", "run-1")

    assert not joined[0].is_cached
