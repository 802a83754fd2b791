from __future__ import annotations

from enum import Enum

"""Section enum for P&L sheet rows.

A section is assigned to a contiguous run of rows and is inherited by every
following row until the next row that declares a new one.
"""

__all__ = [
    "Section",
]


class Section(Enum):
    """Financial section of a P&L sheet row.

    Prefix codes in column A map onto sections: ``1.x`` revenue, ``2.x`` cogs,
    ``3.x`` labor, ``4.x`` fixed, ``5.x`` opex, ``6.x`` other.
    """
    REVENUE = "revenue"
    COGS = "cogs"
    LABOR = "labor"
    FIXED = "fixed"
    OPEX = "opex"
    OTHER = "other"
