"""
Pytest configuration and fixtures for integration service tests.
"""
import pytest
from pyspark.sql import SparkSession

from datalake.config import PipelineConfig


CRIME_SCHEMA = "zip string, category string, no_occurrences long, year int, quarter int"
DEMOGRAPHY_SCHEMA = (
    "zip string, district string, men long, women long, total long, year int"
)


@pytest.fixture(scope="session")
def spark():
    """Create a Spark session for testing."""
    spark = (
        SparkSession.builder
        .appName("DistrictLake-Integration-Tests")
        .master("local[2]")
        .config("spark.sql.shuffle.partitions", "2")
        .config("spark.ui.enabled", "false")
        .getOrCreate()
    )

    yield spark

    spark.stop()


@pytest.fixture
def crime_data(spark):
    """Silver crime records for 2020 (two quarters) and 2021."""
    data = [
        ("08001", "theft", 501, 2020, 1),
        ("08001", "assault", 40, 2020, 2),
        ("08002", "theft", 44, 2020, 1),
        ("08003", "theft", 9, 2020, 1),  # no demography
        ("08004", "theft", 7, 2020, 1),  # zero population
        ("08001", "theft", 480, 2021, 1),
    ]

    return spark.createDataFrame(data, CRIME_SCHEMA)


@pytest.fixture
def demography_data(spark):
    """Silver demography records for 2020 and 2021."""
    data = [
        ("08001", "Barcelona", 120500, 130200, 250700, 2020),
        ("08002", "Badalona", 10000, 12000, 22000, 2020),
        ("08004", "Empty", 0, 0, 0, 2020),
        ("08005", "Sabadell", 1000, 1000, 2000, 2020),  # no crime
        ("08001", "Barcelona", 125000, 135000, 260000, 2021),
    ]

    return spark.createDataFrame(data, DEMOGRAPHY_SCHEMA)


@pytest.fixture
def lake_config(tmp_path, crime_data, demography_data):
    """Lake layout on tmp_path with silver crime and demography written."""
    config = PipelineConfig(
        bronze_path=str(tmp_path / "bronze"),
        silver_path=str(tmp_path / "silver"),
        gold_path=str(tmp_path / "gold"),
    )

    crime_data.write.partitionBy("year", "quarter").parquet(config.silver_crime_path)
    demography_data.write.partitionBy("year").parquet(config.silver_demography_path)

    return config
