"""
Audit cross-referencing: ledger movements → XML exchange records → customs declarations

A deterministic, testable reconciliation engine that indexes line-oriented XML
files, links bank movements to XML lines and declaration files, resolves
movements to candidate records, and keeps the reconciled state durable across
sessions.
"""

__version__ = "0.1.0"
