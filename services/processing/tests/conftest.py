import pytest
from pyspark.sql import SparkSession

from processing.reader import RAW_DEMOGRAPHY_SCHEMA


@pytest.fixture(scope="session")
def spark():
    """Create Spark session for tests"""
    spark = (
        SparkSession.builder
        .appName("DistrictLake-Processing-Tests")
        .master("local[2]")
        .config("spark.sql.shuffle.partitions", "2")
        .config("spark.ui.enabled", "false")
        .getOrCreate()
    )

    yield spark

    spark.stop()


@pytest.fixture
def make_raw(spark):
    """Build a raw demography DataFrame that keeps the given row order"""
    def _make_raw(rows, num_slices=1):
        rdd = spark.sparkContext.parallelize(rows, num_slices)
        return spark.createDataFrame(rdd, RAW_DEMOGRAPHY_SCHEMA)

    return _make_raw


@pytest.fixture
def sample_raw_rows():
    """Two districts, the first one with two reading years"""
    return [
        ("08001 Barcelona", None, None),
        ("2020-01-01", "120.500", "130.200"),
        ("2021-01-01", "125.000", "135.000"),
        ("08002 Badalona", None, None),
        ("2020-01-01", "10.000", "12.000"),
    ]


@pytest.fixture
def expected_records():
    return [
        ("08001", "Barcelona", 2020, 120500, 130200, 250700),
        ("08001", "Barcelona", 2021, 125000, 135000, 260000),
        ("08002", "Badalona", 2020, 10000, 12000, 22000),
    ]
