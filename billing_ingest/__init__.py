"""
Billing ingestion - import monthly billing exports into a tracking workbook

This package provides functionality to:
- Resolve the billing month and its row in the tracking sheet
- Import a hosted billing export into a "<Mon-YY> (RAW)" sheet
- Clean, rename and classify entity names into a "<Mon-YY> (STG1)" sheet
- Manage ODS workbook operations (cells, rows, sheets, styles)
"""
