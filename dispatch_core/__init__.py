"""
Truck dispatch service.

Assigns spreadsheet-sourced delivery tasks to drivers, tracks them through
to completion and archives proof-of-delivery documents.
"""

__version__ = '0.1.0'
