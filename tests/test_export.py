"""
Unit tests for the export module.
"""

import csv
import pytest
from datetime import datetime, timezone, timedelta
from export import CSVExporter, export_filename


TIMESTAMP = datetime(2024, 1, 15, 10, 30, 5, tzinfo=timezone.utc)


class TestExportFilename:
    """Test cases for the export file name convention."""

    def test_slashes_replaced_by_dots(self):
        """Test resource type and timestamp formatting."""
        name = export_filename('Microsoft.Compute/virtualMachines', TIMESTAMP)
        assert name == 'Microsoft.Compute.virtualMachines.Tags-20240115T103005Z.csv'

    def test_nested_resource_type(self):
        """Test child resource types."""
        name = export_filename('Microsoft.Sql/servers/databases', TIMESTAMP)
        assert name == 'Microsoft.Sql.servers.databases.Tags-20240115T103005Z.csv'

    def test_timestamp_converted_to_utc(self):
        """Test non-UTC timestamps are converted before formatting."""
        local = TIMESTAMP.astimezone(timezone(timedelta(hours=2)))
        assert export_filename('A.B/c', local) == 'A.B.c.Tags-20240115T103005Z.csv'


class TestCSVExporter:
    """Test cases for CSVExporter class."""

    @pytest.fixture(autouse=True)
    def setup_exporter(self, tmp_path):
        """Setup test fixtures."""
        self.output_dir = tmp_path
        self.exporter = CSVExporter(str(tmp_path))

    def _records(self):
        return [
            {'ResourceName': 'vm-1', 'env': 'prod', 'owner': ''},
            {'ResourceName': 'vm-2', 'env': '', 'owner': 'team-a'},
        ]

    def test_export_records(self):
        """Test header and rows are written."""
        path = self.exporter.export_records('Microsoft.Compute/virtualMachines', self._records(), TIMESTAMP)

        assert path == self.output_dir / 'Microsoft.Compute.virtualMachines.Tags-20240115T103005Z.csv'
        with open(path, newline='', encoding='utf-8') as f:
            rows = list(csv.reader(f))

        assert rows[0] == ['ResourceName', 'env', 'owner']
        assert rows[1] == ['vm-1', 'prod', '']
        assert rows[2] == ['vm-2', '', 'team-a']
        assert len(rows) == 3

    def test_export_empty_records_writes_nothing(self):
        """Test no file is written for an empty record set."""
        path = self.exporter.export_records('Microsoft.Web/sites', [], TIMESTAMP)

        assert path is None
        assert list(self.output_dir.iterdir()) == []

    def test_no_clobber(self):
        """Test a second export with the same name fails instead of overwriting."""
        path = self.exporter.export_records('Microsoft.Web/sites', self._records(), TIMESTAMP)
        original = path.read_text(encoding='utf-8')

        with pytest.raises(FileExistsError):
            self.exporter.export_records('Microsoft.Web/sites', [{'ResourceName': 'other'}], TIMESTAMP)

        assert path.read_text(encoding='utf-8') == original

    def test_creates_output_dir(self):
        """Test a missing output directory is created."""
        exporter = CSVExporter(str(self.output_dir / 'nested' / 'out'))
        path = exporter.export_records('A.B/c', self._records(), TIMESTAMP)

        assert path.exists()

    def test_utf8_and_special_characters(self):
        """Test UTF-8 values and values needing quoting."""
        records = [{'ResourceName': 'vm-ü', 'note': 'a, "quoted" value'}]
        path = self.exporter.export_records('A.B/c', records, TIMESTAMP)

        with open(path, newline='', encoding='utf-8') as f:
            rows = list(csv.reader(f))
        assert rows[1] == ['vm-ü', 'a, "quoted" value']

    def test_default_timestamp(self):
        """Test the timestamp defaults to now in UTC."""
        path = self.exporter.export_records('A.B/c', self._records())

        assert path.name.startswith('A.B.c.Tags-')
        assert path.name.endswith('Z.csv')

    def test_export_to_string(self):
        """Test CSV export to string."""
        result = self.exporter.export_to_string(self._records())

        assert result.splitlines() == ['ResourceName,env,owner', 'vm-1,prod,', 'vm-2,,team-a']
        assert self.exporter.export_to_string([]) == ''
