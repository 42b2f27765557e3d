"""
Report Generator Module - Hall Management System

This module exports hall data for administrators. Reports are built as pandas
DataFrames and written to the exports folder as CSV or Excel workbooks, ready
to be sent back as a download.

Features:
- Student roster export with room assignment
- Dues ledger export with payment details
- CSV and Excel (openpyxl) output
- Roster and ledger filtering
- Cleanup of old export files
"""

import pandas as pd
from datetime import datetime, timedelta
from typing import Dict, List, Any
import logging
import os

ROSTER_COLUMNS = {
    'student_id': 'Student ID',
    'first_name': 'First Name',
    'last_name': 'Last Name',
    'email': 'Email',
    'phone_number': 'Phone',
    'department': 'Department',
    'year': 'Year',
    'session': 'Session',
    'blood_group': 'Blood Group',
    'block': 'Block',
    'room_no': 'Room',
    'bed_no': 'Bed',
    'room_allocation_date': 'Allocated On',
    'registration_date': 'Registered On',
}

LEDGER_COLUMNS = {
    'student_number': 'Student ID',
    'student_name': 'Name',
    'block': 'Block',
    'room_no': 'Room',
    'period_start': 'Period Start',
    'period_end': 'Period End',
    'amount': 'Amount',
    'status': 'Status',
    'paid_date': 'Paid On',
    'receipt_number': 'Receipt',
    'transaction_id': 'Transaction ID',
    'payment_method': 'Method',
}


class ReportGenerator:
    """
    CSV and Excel exports of the student roster and the dues ledger.
    """

    def __init__(self, database_manager, settings=None):
        """
        Initialize the report generator with database connection.

        Args:
            database_manager: Database manager instance
            settings: Mapping with EXPORTS_FOLDER
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

        settings = settings or {}
        self.output_dir = os.path.abspath(str(settings.get('EXPORTS_FOLDER', 'exports')))
        self.supported_formats = ['excel', 'csv']
        self.currency = settings.get('DUES_CURRENCY', 'BDT')
        self.retention_days = settings.get('REPORT_RETENTION_DAYS', 1)

        os.makedirs(self.output_dir, exist_ok=True)

    def generate_report(self, report_type: str, filters: Dict[str, Any] = None,
                        output_format: str = 'csv') -> Dict[str, Any]:
        """
        Generate an export file.

        Args:
            report_type (str): 'students' or 'dues'
            filters (Dict[str, Any]): Report filters
            output_format (str): Output format (excel, csv)

        Returns:
            Dict[str, Any]: Report generation result with filepath and mimetype
        """
        filters = filters or {}
        try:
            output_format = (output_format or 'csv').lower()
            if output_format not in self.supported_formats:
                return {
                    'success': False,
                    'error': f'Unsupported output format: {output_format}'
                }

            if report_type == 'students':
                data = self._get_student_roster_data(filters)
            elif report_type == 'dues':
                data = self._get_dues_ledger_data(filters)
            else:
                return {
                    'success': False,
                    'error': f'Unknown report type: {report_type}',
                    'status': 404
                }

            if not data['records']:
                return {
                    'success': False,
                    'error': 'No data found for the specified criteria',
                    'status': 404
                }

            # Drop exports older than the retention window
            self.delete_old_reports(self.retention_days)

            if output_format == 'excel':
                result = self._generate_excel_report(report_type, data, filters)
            else:
                result = self._generate_csv_report(report_type, data)

            if result['success']:
                self.logger.info(f"Report generated successfully: {result['filename']}")

            return result

        except Exception as e:
            self.logger.error(f"Report generation failed: {str(e)}")
            return {
                'success': False,
                'error': 'Failed to generate report',
                'status': 500
            }

    def _get_student_roster_data(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        """
        Active students with their bed assignment.

        Args:
            filters (Dict[str, Any]): department, year, block and room_status
                ('allocated' / 'unallocated')

        Returns:
            Dict[str, Any]: records and summary statistics
        """
        where_conditions = ["is_active = 1"]
        params = []

        for field in ('department', 'year', 'block'):
            if filters.get(field):
                where_conditions.append(f"{field} = ?")
                params.append(filters[field])

        if filters.get('room_status') == 'allocated':
            where_conditions.append("bed_no IS NOT NULL")
        elif filters.get('room_status') == 'unallocated':
            where_conditions.append("bed_no IS NULL")

        records = self.db.execute_query(f"""
            SELECT {', '.join(ROSTER_COLUMNS)}
            FROM students
            WHERE {' AND '.join(where_conditions)}
            ORDER BY student_id
        """, tuple(params))

        allocated = sum(1 for record in records if record['bed_no'] is not None)
        return {
            'records': records,
            'columns': ROSTER_COLUMNS,
            'statistics': {
                'Total Students': len(records),
                'Allocated': allocated,
                'Without Room': len(records) - allocated
            }
        }

    def _get_dues_ledger_data(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        """
        Every dues period with the payment that settled it.

        Args:
            filters (Dict[str, Any]): status ('Pending' / 'Overdue' / 'Paid') and student_id

        Returns:
            Dict[str, Any]: records and summary statistics
        """
        where_conditions = ["1=1"]
        params = []

        if filters.get('status'):
            where_conditions.append("d.status = ?")
            params.append(filters['status'])
        if filters.get('student_id'):
            where_conditions.append("s.student_id = ?")
            params.append(filters['student_id'])

        records = self.db.execute_query(f"""
            SELECT s.student_id as student_number,
                   s.first_name || ' ' || s.last_name as student_name,
                   s.block, s.room_no,
                   d.period_start, d.period_end, d.amount, d.status, d.paid_date,
                   p.receipt_number, p.transaction_id, p.payment_method
            FROM dues_periods d
            JOIN students s ON d.student_id = s.id
            LEFT JOIN payments p ON d.payment_id = p.id
            WHERE {' AND '.join(where_conditions)}
            ORDER BY s.student_id, d.period_start
        """, tuple(params))

        collected = sum(record['amount'] for record in records if record['status'] == 'Paid')
        outstanding = sum(record['amount'] for record in records if record['status'] != 'Paid')
        return {
            'records': records,
            'columns': LEDGER_COLUMNS,
            'statistics': {
                'Dues Periods': len(records),
                f'Collected ({self.currency})': collected,
                f'Outstanding ({self.currency})': outstanding
            }
        }

    def _to_frame(self, data: Dict[str, Any]) -> pd.DataFrame:
        df = pd.DataFrame(data['records'], columns=list(data['columns']))
        return df.rename(columns=data['columns'])

    def _generate_excel_report(self, report_type: str, data: Dict[str, Any],
                               filters: Dict[str, Any]) -> Dict[str, Any]:
        """
        Generate an Excel workbook with data, statistics and filter sheets.

        Args:
            report_type (str): Report type
            data (Dict[str, Any]): Report data
            filters (Dict[str, Any]): Applied filters

        Returns:
            Dict[str, Any]: Excel generation result
        """
        filename = f"{report_type}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
        filepath = os.path.join(self.output_dir, filename)

        with pd.ExcelWriter(filepath, engine='openpyxl') as writer:
            self._to_frame(data).to_excel(writer, sheet_name='Data', index=False)

            df_stats = pd.DataFrame([{'Metric': k, 'Value': v} for k, v in data['statistics'].items()])
            df_stats.to_excel(writer, sheet_name='Statistics', index=False)

            filters_data = [{'Filter': k, 'Value': v} for k, v in filters.items() if v]
            if filters_data:
                pd.DataFrame(filters_data).to_excel(writer, sheet_name='Applied Filters', index=False)

        return {
            'success': True,
            'filename': filename,
            'filepath': filepath,
            'format': 'excel',
            'mimetype': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            'size': os.path.getsize(filepath)
        }

    def _generate_csv_report(self, report_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Generate a CSV file from report data.

        Args:
            report_type (str): Report type
            data (Dict[str, Any]): Report data

        Returns:
            Dict[str, Any]: CSV generation result
        """
        filename = f"{report_type}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
        filepath = os.path.join(self.output_dir, filename)

        self._to_frame(data).to_csv(filepath, index=False, encoding='utf-8')

        return {
            'success': True,
            'filename': filename,
            'filepath': filepath,
            'format': 'csv',
            'mimetype': 'text/csv',
            'size': os.path.getsize(filepath)
        }

    def get_available_reports(self) -> List[Dict[str, str]]:
        """List the export types."""
        return [
            {
                'type': 'students',
                'name': 'Student Roster',
                'description': 'Active residents with department, contact and bed assignment'
            },
            {
                'type': 'dues',
                'name': 'Dues Ledger',
                'description': 'Every dues period with its status and settling payment'
            }
        ]

    def delete_old_reports(self, days_old: int = 30) -> Dict[str, Any]:
        """
        Delete export files older than specified days.

        Args:
            days_old (int): Number of days old for deletion threshold

        Returns:
            Dict[str, Any]: Cleanup result
        """
        cutoff_date = datetime.now() - timedelta(days=days_old)
        deleted_files = []

        for filename in os.listdir(self.output_dir):
            filepath = os.path.join(self.output_dir, filename)

            if os.path.isfile(filepath) and datetime.fromtimestamp(os.path.getmtime(filepath)) < cutoff_date:
                try:
                    os.remove(filepath)
                    deleted_files.append(filename)
                    self.logger.info(f"Deleted old report file: {filename}")
                except OSError as e:
                    self.logger.error(f"Failed to delete file {filename}: {str(e)}")

        return {
            'success': True,
            'deleted_count': len(deleted_files),
            'deleted_files': deleted_files
        }
