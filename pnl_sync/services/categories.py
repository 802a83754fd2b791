from __future__ import annotations

import re
from dataclasses import dataclass

from ..models.section import Section

"""Declarative keyword tables for P&L row classification.

Order inside every table is load-bearing: the first matching rule wins. Rules
whose keywords share a substring with a more generic rule come first (13th
month salary, casual and extra-shift labor are checked before plain salary).

Labels are matched against the lowercased text of columns A-D. The sheet mixes
English and Vietnamese labels, so both are listed.
"""

__all__ = [
    "CATEGORY_RULES",
    "RowLabel",
    "SECTION_RULES",
    "TOTAL_RULES",
    "CategoryRule",
    "SectionRule",
    "TotalRule",
    "declared_section",
    "match_category",
    "match_totals",
]

_CODE_RE = re.compile(r"^\d+(?:\.\d+)*\.?$")


@dataclass(frozen=True)
class RowLabel:
    """Label cells of one row, lowercased and stripped."""
    col_a: str
    col_b: str
    col_c: str
    col_d: str

    @classmethod
    def from_cells(cls, a: str, b: str, c: str, d: str) -> RowLabel:
        return cls(a.lower().strip(), b.lower().strip(), c.lower().strip(), d.lower().strip())

    @property
    def combined(self) -> str:
        """Columns A-D joined by single spaces."""
        return f"{self.col_a} {self.col_b} {self.col_c} {self.col_d}"

    @property
    def description(self) -> str:
        """Columns B and C, the description area of the sheet."""
        return f"{self.col_b} {self.col_c}"

    @property
    def primary(self) -> str:
        """The most specific non-empty label cell (C, then B, then A)."""
        return self.col_c or self.col_b or self.col_a

    @property
    def code(self) -> str | None:
        """Row number such as "3.4" from column A or B (trailing dot dropped)."""
        for cell in (self.col_a, self.col_b):
            if cell and _CODE_RE.match(cell):
                return cell.rstrip(".")
        return None

    @property
    def is_empty(self) -> bool:
        return not (self.col_a or self.col_b or self.col_c)

    def has_cell(self, text: str) -> bool:
        return text in (self.col_a, self.col_b, self.col_c, self.col_d)


# --- Section declarations ---------------------------------------------------

_PREFIX_RE = re.compile(r"^([1-6])\.(?:\d|\s|$)")
_PREFIX_SECTIONS = {
    "1": Section.REVENUE,
    "2": Section.COGS,
    "3": Section.LABOR,
    "4": Section.FIXED,
    "5": Section.OPEX,
    "6": Section.OTHER,
}


@dataclass(frozen=True)
class SectionRule:
    section: Section
    keywords: tuple[str, ...]
    pattern: re.Pattern[str]  # matched against column B, C and B+C


SECTION_RULES: tuple[SectionRule, ...] = (
    SectionRule(Section.REVENUE, ("gross sales",), re.compile(r"^1\.?\s*gross")),
    SectionRule(Section.COGS, ("cost of goods", "cogs"), re.compile(r"^2\.?\s*(cost|cogs)")),
    SectionRule(
        Section.LABOR,
        ("direct labor", "chi phí nhân công"),
        re.compile(r"^3\.?\s*(direct|labor)"),
    ),
    SectionRule(Section.FIXED, ("fixed operating",), re.compile(r"^4\.?\s*fixed")),
    SectionRule(Section.OPEX, ("operating expenses",), re.compile(r"^5\.?\s*operating")),
    SectionRule(
        Section.OTHER,
        ("reserve fund", "quỹ dự phòng"),
        re.compile(r"^6\.?\s*reserve"),
    ),
)


def declared_section(label: RowLabel) -> Section | None:
    """Section declared by this row, or None when the row declares nothing.

    The column A prefix code (``1.x`` .. ``6.x``) is the most reliable signal;
    section keywords in the description columns are the fallback for header
    rows without a code.
    """
    prefix = _PREFIX_RE.match(label.col_a)
    if prefix is not None:
        return _PREFIX_SECTIONS[prefix.group(1)]
    description = label.description.strip()
    for rule in SECTION_RULES:
        if any(k in description for k in rule.keywords):
            return rule.section
        if any(rule.pattern.match(t) for t in (description, label.col_b, label.col_c)):
            return rule.section
    return None


# --- Per-section categories -------------------------------------------------

@dataclass(frozen=True)
class CategoryRule:
    """One category of a section table.

    A row matches when any of: a keyword is a substring of columns A-D, a label
    equals one of the cells exactly, the row code equals one of ``codes``, or
    ``pattern`` matches column A. ``excludes`` vetoes a match;
    ``top_level_only`` vetoes sub-item rows (codes like 4.1.2) so breakdown
    lines never overwrite their parent line.
    """
    category: str
    keywords: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()
    codes: tuple[str, ...] = ()
    pattern: re.Pattern[str] | None = None
    excludes: tuple[str, ...] = ()
    top_level_only: bool = False

    def matches(self, label: RowLabel) -> bool:
        combined = label.combined
        if any(x in combined for x in self.excludes):
            return False
        code = label.code
        if self.top_level_only and code is not None and code.count(".") > 1:
            return False
        if any(k in combined for k in self.keywords):
            return True
        if any(label.has_cell(lbl) for lbl in self.labels):
            return True
        if code is not None and code in self.codes:
            return True
        return self.pattern is not None and self.pattern.match(label.col_a) is not None


CATEGORY_RULES: dict[Section, tuple[CategoryRule, ...]] = {
    Section.REVENUE: (
        CategoryRule("grossSales", keywords=("gross sales",), pattern=re.compile(r"^1\.?\s*gross")),
        CategoryRule("revenueWine", keywords=("wine",)),
        CategoryRule("revenueSpirits", keywords=("spirit",)),
        CategoryRule("revenueCocktails", keywords=("cocktail",)),
        CategoryRule("revenueShisha", keywords=("shisha",)),
        CategoryRule("revenueBeer", keywords=("beer",)),
        CategoryRule("revenueFood", keywords=("food",)),
        CategoryRule("revenueBalloons", keywords=("balloon",)),
        CategoryRule(
            "revenueOther",
            keywords=("other (coke", "other"),
            excludes=("cogs", "other income", "other expenses"),
        ),
        CategoryRule("discounts", keywords=("discount",)),
        CategoryRule("foc", labels=("foc",), keywords=("foc ", "(foc")),
        CategoryRule("netSales", keywords=("net sales",), codes=("1.1",)),
        CategoryRule("serviceCharge", labels=("svc",), keywords=("service charge",), excludes=("labor",)),
    ),
    Section.COGS: (
        CategoryRule(
            "cogs",
            keywords=("cost of goods",),
            pattern=re.compile(r"^2\.?\s*(cost|cogs)?\s*$"),
        ),
        CategoryRule("cogsWine", labels=("wine",)),
        CategoryRule("cogsSpirits", labels=("spirits",)),
        CategoryRule("cogsCocktails", labels=("cocktails",)),
        CategoryRule("cogsShisha", labels=("shisha",)),
        CategoryRule("cogsBeer", labels=("beer",)),
        CategoryRule("cogsFood", labels=("food",)),
        CategoryRule("cogsBalloons", labels=("balloons",)),
        CategoryRule("cogsOther", labels=("others",), keywords=("other",)),
    ),
    Section.LABOR: (
        CategoryRule(
            "laborCost",
            keywords=("direct labor", "chi phí nhân công"),
            pattern=re.compile(r"^3\.?\s*$"),
        ),
        # specific salary-like lines before plain salary
        CategoryRule(
            "labor13th",
            keywords=("13th salary", "13th month", "lương tháng 13", "tháng 13"),
            codes=("3.4",),
        ),
        CategoryRule(
            "laborCasual",
            keywords=("casual", "extra shift", "thời vụ", "ca làm thêm"),
            codes=("3.2",),
        ),
        # sheet spells it "insurence"
        CategoryRule("laborInsurance", keywords=("social insur", "bảo hiểm xã hội"), codes=("3.3",)),
        CategoryRule("laborHoliday", keywords=("public holiday", "ngày lễ"), codes=("3.5",)),
        CategoryRule("laborSvc", labels=("svc",), codes=("3.6",)),
        CategoryRule("laborSalary", keywords=("salary", "lương"), codes=("3.1",)),
    ),
    Section.FIXED: (
        CategoryRule("fixedCosts", keywords=("fixed operating", "chi phí hoạt động cố định")),
        CategoryRule("fixedRental", keywords=("rental", "thuê"), codes=("4.1",), top_level_only=True),
        CategoryRule(
            "fixedMaintenance",
            keywords=("property maintenance", "maintenance", "bảo trì"),
            codes=("4.2",),
            top_level_only=True,
        ),
        CategoryRule(
            "fixedAdmin",
            keywords=("administrative", "hành chính"),
            codes=("4.3",),
            top_level_only=True,
        ),
    ),
    Section.OPEX: (
        CategoryRule("opex", keywords=("operating expenses", "chi phí hoạt động")),
        CategoryRule(
            "opexConsumables",
            keywords=("consumable", "vật tư tiêu hao"),
            codes=("5.1",),
            top_level_only=True,
        ),
        CategoryRule("opexMarketing", keywords=("marketing",), codes=("5.2",), top_level_only=True),
        CategoryRule("opexEvents", keywords=("event",), codes=("5.3",), top_level_only=True),
    ),
    Section.OTHER: (),
}


def match_category(section: Section, label: RowLabel) -> str | None:
    """First category of ``section`` matching the row label."""
    for rule in CATEGORY_RULES[section]:
        if rule.matches(label):
            return rule.category
    return None


# --- Section-agnostic totals ------------------------------------------------

@dataclass(frozen=True)
class TotalRule:
    """A total or summary row recognized regardless of the running section.

    Total rows do not reliably carry their prefix code, so they are checked
    on every row after the section-scoped match. ``not_code`` skips breakdown
    rows (e.g. "2.1") that mention the total's keyword; ``positive_only``
    ignores negative values for section totals.
    """
    category: str
    keywords: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()
    pattern: re.Pattern[str] | None = None  # matched against column A
    combined_pattern: re.Pattern[str] | None = None  # matched against columns A-D
    not_code: re.Pattern[str] | None = None  # column A veto
    positive_only: bool = False

    def matches(self, label: RowLabel, value: float) -> bool:
        if self.positive_only and value <= 0:
            return False
        if self.not_code is not None and self.not_code.match(label.col_a):
            return False
        combined = label.combined
        if any(k in combined for k in self.keywords):
            return True
        if any(label.has_cell(lbl) for lbl in self.labels):
            return True
        if self.pattern is not None and self.pattern.match(label.col_a):
            return True
        return self.combined_pattern is not None and self.combined_pattern.match(combined.strip()) is not None


def _section_total(category: str, digit: str, keywords: tuple[str, ...], words: str | None = None) -> TotalRule:
    return TotalRule(
        category,
        keywords=keywords,
        pattern=re.compile(rf"^{digit}\.?\s*$"),
        combined_pattern=re.compile(rf"^{digit}\.?\s*({words})") if words else None,
        not_code=re.compile(rf"^{digit}\.\d"),
        positive_only=True,
    )


TOTAL_RULES: tuple[TotalRule, ...] = (
    _section_total("cogs", "2", ("cost of goods",), "cost|cogs"),
    TotalRule(
        "reserveFund",
        keywords=("reserve fund", "quỹ dự trữ", "quỹ dự phòng"),
        pattern=re.compile(r"^6\.?\s*$"),
    ),
    _section_total("laborCost", "3", ("direct labor", "chi phí nhân công")),
    _section_total("fixedCosts", "4", ("fixed operating", "chi phí hoạt động cố định")),
    _section_total("opex", "5", ("operating expenses",)),
    TotalRule("totalExpenses", keywords=("total company expenses", "tổng chi phí")),
    TotalRule("grossProfit", keywords=("gross operating profit", "lợi nhuận gộp")),
    TotalRule("ebit", keywords=("ebit",), labels=("ebi",)),
    TotalRule("depreciation", keywords=("depreciation", "khấu hao")),
    TotalRule("otherIncome", keywords=("other income", "thu nhập khác")),
    TotalRule("otherExpenses", keywords=("other expenses", "chi phí khác")),
)


def match_totals(label: RowLabel, value: float) -> list[str]:
    """Every total category this row feeds (checked independently, not first-wins)."""
    return [rule.category for rule in TOTAL_RULES if rule.matches(label, value)]
