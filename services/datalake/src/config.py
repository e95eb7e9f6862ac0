"""
Configuration for the lake pipeline stages
"""
from typing import Optional
from pydantic_settings import BaseSettings

from .errors import ConfigurationError


FILL_STRATEGIES = ("window", "two_phase")


class PipelineConfig(BaseSettings):
    """Pipeline configuration shared by the processing and integration stages"""

    # Lake zones (mount points or s3a:// URIs resolved outside the pipeline)
    bronze_path: str = "/mnt/bronze"
    silver_path: str = "/mnt/silver"
    gold_path: str = "/mnt/gold"

    # Dataset names inside each zone
    demography_dataset: str = "demographic"
    crime_dataset: str = "crime"
    integrated_dataset: str = "demo_crime"

    # S3A access; credentials are injected by the secret store through env
    s3_endpoint: Optional[str] = None
    s3_access_key: Optional[str] = None
    s3_secret_key: Optional[str] = None

    # Spark configuration
    spark_app_name: str = "DistrictLake"
    spark_master: Optional[str] = None  # None = local mode
    shuffle_partitions: int = 8

    # Processing configuration
    fill_strategy: str = "two_phase"
    crime_count_column: str = "no_occurrences"
    quarter_column: str = "quarter"

    @property
    def bronze_demography_path(self) -> str:
        """Bronze location of the raw demography rows"""
        return f"{self.bronze_path.rstrip('/')}/{self.demography_dataset}"

    @property
    def silver_demography_path(self) -> str:
        """Silver location of the flattened demography records"""
        return f"{self.silver_path.rstrip('/')}/{self.demography_dataset}"

    @property
    def silver_crime_path(self) -> str:
        """Silver location of the structured crime records"""
        return f"{self.silver_path.rstrip('/')}/{self.crime_dataset}"

    @property
    def gold_integrated_path(self) -> str:
        """Gold location of the joined crime/demography records"""
        return f"{self.gold_path.rstrip('/')}/{self.integrated_dataset}"

    def validate_fill_strategy(self) -> str:
        if self.fill_strategy not in FILL_STRATEGIES:
            raise ConfigurationError(
                f"Unknown fill strategy: {self.fill_strategy}. "
                f"Must be one of {list(FILL_STRATEGIES)}"
            )
        return self.fill_strategy

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "LAKE_"


def get_config() -> PipelineConfig:
    """Get pipeline configuration instance"""
    return PipelineConfig()
