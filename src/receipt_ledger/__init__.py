"""
Receipt OCR → Structured Receipt → Balanced, Categorized Ledger Entry

A deterministic, testable pipeline that turns noisy receipt text into
double-entry postings with confidence-scored parsing, layered account
resolution, and contextual tagging.
"""

__version__ = "0.1.0"
