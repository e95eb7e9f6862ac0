"""
Spark session factory
"""
import logging
from typing import Optional

from pyspark.sql import SparkSession

from .config import PipelineConfig

logger = logging.getLogger(__name__)


def create_spark_session(
    config: PipelineConfig,
    app_name: Optional[str] = None
) -> SparkSession:
    """
    Create and configure Spark session

    Args:
        config: Pipeline configuration
        app_name: Spark application name (default: config.spark_app_name)

    Returns:
        Configured SparkSession
    """
    builder = SparkSession.builder.appName(app_name or config.spark_app_name)

    if config.spark_master:
        builder = builder.master(config.spark_master)
    else:
        builder = builder.master("local[*]")

    # S3/MinIO configuration, only when the lake lives behind s3a://
    if config.s3_endpoint:
        builder = builder.config("spark.hadoop.fs.s3a.endpoint", config.s3_endpoint)
        builder = builder.config("spark.hadoop.fs.s3a.access.key", config.s3_access_key)
        builder = builder.config("spark.hadoop.fs.s3a.secret.key", config.s3_secret_key)
        builder = builder.config("spark.hadoop.fs.s3a.path.style.access", "true")
        builder = builder.config("spark.hadoop.fs.s3a.impl", "org.apache.hadoop.fs.s3a.S3AFileSystem")

    # Performance tuning
    builder = builder.config("spark.sql.adaptive.enabled", "true")
    builder = builder.config("spark.sql.adaptive.coalescePartitions.enabled", "true")
    builder = builder.config("spark.sql.shuffle.partitions", str(config.shuffle_partitions))

    spark = builder.getOrCreate()

    logger.info(f"Spark session created: {spark.version}")
    return spark
