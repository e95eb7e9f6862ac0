"""Storage capabilities injected into readers and writers."""
import logging
from dataclasses import dataclass
from typing import List

from pyspark.sql import SparkSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageLocation:
    """Root of a dataset in the lake (local path, dbfs mount or s3a:// URI)."""

    root: str

    def path(self, *parts: str) -> str:
        """Build a path below the dataset root.

        Args:
            parts: Relative path segments (e.g. 'year=2020', 'quarter=1')

        Returns:
            Joined path string
        """
        base = self.root.rstrip("/")
        if not parts:
            return base
        return "/".join([base] + [p.strip("/") for p in parts])


class HadoopStorage:
    """File-system operations through the Hadoop FileSystem of a Spark session.

    Works for any scheme Spark is configured for (file://, s3a://, abfss://),
    so the same rename/delete semantics apply to reads and writes.
    """

    def __init__(self, spark: SparkSession):
        """Initialize storage capability.

        Args:
            spark: Active SparkSession whose Hadoop configuration is used
        """
        self.spark = spark
        self._jvm = spark.sparkContext._jvm
        self._conf = spark.sparkContext._jsc.hadoopConfiguration()

    def _path(self, path: str):
        return self._jvm.org.apache.hadoop.fs.Path(path)

    def _fs(self, jpath):
        return jpath.getFileSystem(self._conf)

    def exists(self, path: str) -> bool:
        """Check if a file or directory exists."""
        jpath = self._path(path)
        return bool(self._fs(jpath).exists(jpath))

    def mkdirs(self, path: str) -> None:
        """Create a directory and any missing parents."""
        jpath = self._path(path)
        self._fs(jpath).mkdirs(jpath)

    def rename(self, src: str, dst: str) -> bool:
        """Rename src to dst, creating dst's parent directory first.

        Args:
            src: Existing path
            dst: Target path (must not exist)

        Returns:
            True if the file system reported success
        """
        jsrc = self._path(src)
        jdst = self._path(dst)
        fs = self._fs(jsrc)
        parent = jdst.getParent()
        if parent is not None and not fs.exists(parent):
            self.mkdirs(parent.toString())
        renamed = bool(fs.rename(jsrc, jdst))
        logger.debug(f"Renamed {src} -> {dst}: {renamed}")
        return renamed

    def delete(self, path: str) -> bool:
        """Recursively delete a path. Missing paths are not an error."""
        jpath = self._path(path)
        fs = self._fs(jpath)
        if not fs.exists(jpath):
            return False
        return bool(fs.delete(jpath, True))

    def list_dirs(self, path: str) -> List[str]:
        """List the immediate subdirectory names of a path."""
        jpath = self._path(path)
        fs = self._fs(jpath)
        if not fs.exists(jpath):
            return []
        return sorted(
            status.getPath().getName()
            for status in fs.listStatus(jpath)
            if status.isDirectory()
        )
