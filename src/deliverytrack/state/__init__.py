"""State/store layer.

The single place where seeded rows and live notifications are reconciled
into the latest known location per delivery.
"""
