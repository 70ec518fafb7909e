"""Excel workbook reading and the workbook-backed table store."""
