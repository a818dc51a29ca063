"""
Ledger Kernel

Domain core of the invoice ledger and monthly report engine:
- Source document and normalized entry value objects
- Report period lifecycle (draft -> finalized -> submitted)
- Typed exception hierarchy
- Structured JSON logging
- SQLAlchemy persistence boundary (models, selectors, services)
"""

__version__ = "0.1.0"
