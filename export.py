"""
CSV Export - One no-clobber CSV file per resource type.
"""

import csv
import logging
from datetime import datetime, timezone
from io import StringIO
from pathlib import Path
from typing import Dict, Any, List, Optional, TextIO

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y%m%dT%H%M%SZ'


def export_filename(resource_type: str, timestamp: datetime) -> str:
    """
    '<type with / replaced by .>.Tags-<yyyyMMddTHHmmssZ>.csv'
    """
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return f"{resource_type.replace('/', '.')}.Tags-{timestamp.strftime(TIMESTAMP_FORMAT)}.csv"


class CSVExporter:
    """
    Writes normalized tag records to CSV. Existing files are never overwritten.
    """

    def __init__(self, output_dir: str = '.'):
        self.output_dir = Path(output_dir)

    def write_header(self, file_handle: TextIO, columns: List[str]):
        """Write CSV header to file"""
        writer = csv.writer(file_handle)
        writer.writerow(columns)

    def write_row(self, file_handle: TextIO, columns: List[str], data: Dict[str, Any]):
        """Write a single row to CSV"""
        writer = csv.writer(file_handle)
        writer.writerow([data.get(column, '') for column in columns])

    def export_records(self, resource_type: str, records: List[Dict[str, Any]],
                       timestamp: Optional[datetime] = None) -> Optional[Path]:
        """
        Export records for one resource type.

        Returns the written path, or None when there is nothing to write.
        Raises FileExistsError if the target file already exists.
        """
        if not records:
            logger.info(f"No resources found for {resource_type}, skipping CSV export")
            return None

        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        columns = list(records[0].keys())
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / export_filename(resource_type, timestamp)

        logger.info(f"Starting CSV export to {path}")
        # Mode 'x' refuses to replace an existing file
        with open(path, 'x', newline='', encoding='utf-8') as csvfile:
            self.write_header(csvfile, columns)
            for record in records:
                self.write_row(csvfile, columns, record)

        logger.info(f"CSV export completed. Total rows: {len(records)}")
        return path

    def export_to_string(self, records: List[Dict[str, Any]]) -> str:
        """
        Export records to string (useful for testing).
        """
        if not records:
            return ''
        output = StringIO()
        columns = list(records[0].keys())
        self.write_header(output, columns)
        for record in records:
            self.write_row(output, columns, record)
        return output.getvalue()
