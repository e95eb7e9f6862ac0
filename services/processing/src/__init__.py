"""
District Lake Processing Service

Spark-based bronze to silver stage for demography data.
Recovers the district of every yearly reading and stages flat records.
"""

__version__ = "0.1.0"
