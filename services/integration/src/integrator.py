"""
Crime and demography integration.

Joins crime records with the population of their district and derives the
crime incidence per 1000 inhabitants.
"""
import logging
from typing import Dict, Optional

from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from datalake.errors import DataQualityIssue

logger = logging.getLogger(__name__)


JOIN_KEY = "zip"
INCIDENCE_SCALE = 1000
INCIDENCE_DECIMALS = 2


def crime_incidence(count_col: str, total_col: str = "total"):
    """
    Crime incidence per 1000 inhabitants, rounded to 2 decimals.

    Null when the population is zero; a real but empty district is a valid
    data state, not an error.
    """
    return F.when(
        F.col(total_col) > 0,
        F.round(
            (F.col(count_col) / F.col(total_col)) * F.lit(INCIDENCE_SCALE),
            INCIDENCE_DECIMALS
        )
    )


class CrimeDemographyIntegrator:
    """Joins crime and demography on zip and computes crime_incidence."""

    def __init__(self, count_column: str = "no_occurrences"):
        """
        Initialize integrator.

        Args:
            count_column: Crime column holding the number of occurrences
        """
        self.count_column = count_column
        self._crime: Optional[DataFrame] = None
        self._demography: Optional[DataFrame] = None
        self._joined: Optional[DataFrame] = None

    def integrate(self, crime_df: DataFrame, demography_df: DataFrame) -> DataFrame:
        """
        Inner join both datasets on zip and add crime_incidence.

        Both inputs must already be scoped to the same year (and quarter for
        crime). Zips present on one side only produce no output; they are
        reported by compute_quality_metrics().

        Args:
            crime_df: Crime records with zip and the count column
            demography_df: Demography records (zip, men, women, total)

        Returns:
            Crime records extended with men, women, total and crime_incidence
        """
        demography = demography_df.select(JOIN_KEY, "men", "women", "total")

        joined = crime_df.join(demography, on=JOIN_KEY, how="inner")
        joined = joined.withColumn(
            "crime_incidence", crime_incidence(self.count_column)
        )

        self._crime = crime_df
        self._demography = demography
        self._joined = joined
        return joined

    def compute_quality_metrics(self) -> Dict[str, int]:
        """
        Count join coverage and undefined metrics for the last integrate().

        Returns:
            Dictionary with row counts, distinct unmatched zips per side and
            joined rows whose incidence is undefined
        """
        if self._joined is None:
            raise RuntimeError("integrate() must be called before computing metrics")

        crime_zips = self._crime.select(JOIN_KEY).distinct()
        demography_zips = self._demography.select(JOIN_KEY).distinct()

        metrics = {
            "crime_rows": self._crime.count(),
            "demography_rows": self._demography.count(),
            "joined_rows": self._joined.count(),
            "unmatched_crime_zips": crime_zips.join(
                demography_zips, on=JOIN_KEY, how="left_anti"
            ).count(),
            "unmatched_demography_zips": demography_zips.join(
                crime_zips, on=JOIN_KEY, how="left_anti"
            ).count(),
            DataQualityIssue.UNDEFINED_METRIC.value: self._joined.filter(
                F.col("total") <= 0
            ).count(),
        }

        unmatched = metrics["unmatched_crime_zips"] + metrics["unmatched_demography_zips"]
        if unmatched:
            logger.warning(
                f"{DataQualityIssue.MISSING_JOIN_KEY.value}: "
                f"{metrics['unmatched_crime_zips']} crime zips and "
                f"{metrics['unmatched_demography_zips']} demography zips have no match"
            )
        if metrics[DataQualityIssue.UNDEFINED_METRIC.value]:
            logger.warning(
                f"{DataQualityIssue.UNDEFINED_METRIC.value}: "
                f"{metrics[DataQualityIssue.UNDEFINED_METRIC.value]} joined rows "
                f"have zero population, crime_incidence left null"
            )

        logger.info(f"Integration metrics: {metrics}")
        return metrics
