"""
District Lake shared components

Configuration, error taxonomy, storage capabilities and the partitioned
writer used by the processing and integration stages.
"""

__version__ = "0.1.0"
