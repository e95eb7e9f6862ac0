"""
District Lake Integration Service

Joins silver crime and demography records by zip, derives the crime
incidence indicator and writes the gold table partitioned by period.
"""

__version__ = "0.1.0"
