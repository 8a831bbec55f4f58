"""
Archive naming and archive tool invocation.

Archives are gzip-compressed tarballs created by the external `tar`
command, one per service per day:

    <backup_dir>/<service>-<YYYY-MM-DD>.tar.gz
"""

import os
from datetime import date, datetime
from typing import List, Optional


# Files ending in this suffix are eligible for retention cleanup
ARCHIVE_SUFFIX = '.gz'
ARCHIVE_EXTENSION = 'tar.gz'

# tar flags: create, gzip, verbose, to file
TAR_CREATE_FLAGS = '-zcvf'


class CompressionError(Exception):
    """Raised when an archive name cannot be built."""
    pass


def generate_archive_filename(service_name: str, day: Optional[date] = None) -> str:
    """
    Generate the archive filename for a service.

    Format: {service}-{YYYY-MM-DD}.tar.gz

    Args:
        service_name: Name of the service (container)
        day: Date to stamp into the name (default: today)

    Returns:
        Filename (without path)

    Raises:
        CompressionError: If the service name is empty, "." or "..", or contains a path separator
    """
    if not service_name:
        raise CompressionError("No service name provided")
    if service_name in (os.curdir, os.pardir):
        raise CompressionError(f"Invalid service name: {service_name}")
    if os.sep in service_name or (os.altsep and os.altsep in service_name):
        raise CompressionError(f"Invalid service name: {service_name}")

    if day is None:
        day = datetime.now().date()

    return f"{service_name}-{day.strftime('%Y-%m-%d')}.{ARCHIVE_EXTENSION}"


def get_archive_path(backup_dir: str, service_name: str, day: Optional[date] = None) -> str:
    """Full destination path of today's (or `day`'s) archive for a service."""
    return os.path.join(backup_dir, generate_archive_filename(service_name, day))


def build_tar_arguments(archive_path: str, source_dir: str) -> List[str]:
    """
    Arguments for the archive tool to create a gzip tarball.

    Args:
        archive_path: Destination archive file
        source_dir: Directory to archive

    Returns:
        Argument list (without the executable)
    """
    return [TAR_CREATE_FLAGS, archive_path, source_dir]


def is_archive_file(filename: str) -> bool:
    """Check whether a file name carries the archive suffix."""
    return filename.endswith(ARCHIVE_SUFFIX)
