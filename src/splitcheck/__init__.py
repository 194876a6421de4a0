"""
Splitcheck receipt extraction package.

Turns a photographed receipt into priced line items for splitting a shared bill, using a
hosted document-understanding service with a local OCR fallback.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
