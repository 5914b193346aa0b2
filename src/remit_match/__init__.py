"""
Bank payment note → Historical match → Email evidence → Reviewer

A deterministic, testable pipeline that turns unstructured bank-statement
payment notes into ranked historical posting candidates, with a company-name
and email-evidence fallback when no confident match exists.
"""

__version__ = "0.1.0"
