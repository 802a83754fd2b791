"""Sync a venue P&L Google Sheet into the ``pnl_monthly`` PostgreSQL table."""

__version__ = "0.1.0"
