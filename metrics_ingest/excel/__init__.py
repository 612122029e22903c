"""Workbook reading, cell extraction and transposed-sheet scanning."""
