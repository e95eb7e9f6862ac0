import pytest
from pyspark.sql import SparkSession


@pytest.fixture(scope="session")
def spark():
    """Create Spark session for tests"""
    spark = (
        SparkSession.builder
        .appName("DistrictLake-Datalake-Tests")
        .master("local[2]")
        .config("spark.sql.shuffle.partitions", "2")
        .config("spark.ui.enabled", "false")
        .getOrCreate()
    )

    yield spark

    spark.stop()


@pytest.fixture
def demography_batch(spark):
    """Flattened demography records spanning two years"""
    data = [
        ("08001", "Barcelona", 2020, 120500, 130200, 250700),
        ("08001", "Barcelona", 2021, 125000, 135000, 260000),
        ("08002", "Badalona", 2020, 10000, 12000, 22000),
    ]

    columns = ["zip", "district", "year", "men", "women", "total"]

    return spark.createDataFrame(data, columns)
