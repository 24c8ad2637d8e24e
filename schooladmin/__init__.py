"""School administration backend: records, attendance, grades and reports."""

__version__ = "0.1.0"
