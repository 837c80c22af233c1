"""
Blood Work Analyzer - Lab report parsing and blood test tracking.

Turns text extracted from PDF lab reports into structured, range-checked
test results and keeps a ledger of blood tests for trend analysis.
"""

__version__ = "0.1.0"
