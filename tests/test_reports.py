"""
Tests for CSV and Excel exports
"""
import io
import os
import time

import pandas as pd


class TestStudentRoster:
    """Roster export through the API"""

    def test_csv_roster(self, client, register_student, admin_headers):
        register_student('S1001')
        register_student('S1002', department='EEE')

        response = client.get('/api/reports/students?format=csv', headers=admin_headers)

        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        frame = pd.read_csv(io.BytesIO(response.data))
        assert list(frame['Student ID']) == ['S1001', 'S1002']
        assert 'Bed' in frame.columns

    def test_roster_filters(self, client, register_student, admin_headers):
        register_student('S1001')
        register_student('S1002', department='EEE')

        response = client.get('/api/reports/students?department=EEE', headers=admin_headers)

        frame = pd.read_csv(io.BytesIO(response.data))
        assert list(frame['Student ID']) == ['S1002']

    def test_excel_roster_has_statistics_sheet(self, client, student, admin_headers):
        response = client.get('/api/reports/students?format=excel&room_status=unallocated',
                              headers=admin_headers)

        assert response.status_code == 200
        sheets = pd.read_excel(io.BytesIO(response.data), sheet_name=None, engine='openpyxl')
        assert set(sheets) == {'Data', 'Statistics', 'Applied Filters'}
        stats = dict(zip(sheets['Statistics']['Metric'], sheets['Statistics']['Value']))
        assert stats['Without Room'] == 1

    def test_empty_roster_is_404(self, client, admin_headers):
        response = client.get('/api/reports/students', headers=admin_headers)
        assert response.status_code == 404

    def test_unsupported_format(self, client, student, admin_headers):
        response = client.get('/api/reports/students?format=pdf', headers=admin_headers)
        assert response.status_code == 400

    def test_report_listing(self, client, admin_headers):
        reports = client.get('/api/reports', headers=admin_headers).get_json()['reports']
        assert [report['type'] for report in reports] == ['students', 'dues']


class TestReportGenerator:
    """Generator used directly"""

    def test_dues_ledger_statistics(self, student, managers):
        result = managers['report_generator'].generate_report('dues', {'status': 'Pending'}, 'excel')

        assert result['success'] is True
        assert result['filename'].endswith('.xlsx')
        stats = pd.read_excel(result['filepath'], sheet_name='Statistics', engine='openpyxl')
        values = dict(zip(stats['Metric'], stats['Value']))
        assert values['Outstanding (BDT)'] == 1320

    def test_unknown_report_type(self, managers):
        result = managers['report_generator'].generate_report('inventory')
        assert result['status'] == 404

    def test_delete_old_reports(self, student, managers):
        generator = managers['report_generator']
        old = generator.generate_report('students')
        fresh = generator.generate_report('dues')
        stale = time.time() - 40 * 24 * 3600
        os.utime(old['filepath'], (stale, stale))

        result = generator.delete_old_reports(days_old=30)

        assert result['deleted_files'] == [old['filename']]
        assert not os.path.exists(old['filepath'])
        assert os.path.exists(fresh['filepath'])

    def test_generating_prunes_expired_exports(self, student, managers):
        generator = managers['report_generator']
        expired = generator.generate_report('students')
        stale = time.time() - 2 * 24 * 3600
        os.utime(expired['filepath'], (stale, stale))

        latest = generator.generate_report('dues', output_format='excel')

        assert not os.path.exists(expired['filepath'])
        assert os.listdir(os.path.dirname(latest['filepath'])) == [latest['filename']]
