"""
Ingest pipeline for inventory file imports.

Stages of an import:
- Gate: file type detection from the filename extension
- Reader: xlsx/xls/csv/json bytes to a raw row/column grid
- Header detection: which row holds the column labels
- Column matching: file headers to schema columns (exact, alias, fuzzy)
- Sanitization: typed, canonical cell values with warnings
"""
