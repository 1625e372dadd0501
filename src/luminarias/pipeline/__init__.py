"""
Pipeline module for luminarias batch processing.

Provides batch selection, the sequential batch worker, and the export naming
and packing used for downloads.
"""
