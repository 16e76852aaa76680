"""
Reporting.

- query.py: view parameters, filters and report/row construction
- render.py: rich table sink for a Report
"""
