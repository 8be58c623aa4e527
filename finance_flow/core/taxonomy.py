"""Category taxonomy shared by every classifier and report.

The category lists, icon map and alias table are immutable module constants,
validated once when :data:`DEFAULT_TAXONOMY` is built. Adding a category means
touching both the list and :data:`CATEGORY_ICONS`; :class:`Taxonomy` refuses
to construct otherwise.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from finance_flow.core.models import TransactionType


class TaxonomyError(ValueError):
    """Raised when category lists, icons and aliases disagree."""


ICON_REGISTRY = frozenset({
    "food", "transport", "leisure", "home", "health", "pets", "gifts",
    "education", "salary", "investment", "business", "professional",
    "shopping", "other",
})

DEFAULT_ICON = "shopping"

EXPENSE_CATEGORIES: Tuple[str, ...] = (
    "Food and Drink",
    "Transport",
    "Leisure",
    "Home",
    "Health",
    "Education",
    "Pets",
    "Gifts",
    "Shopping",
    "Other",
)

INCOME_CATEGORIES: Tuple[str, ...] = (
    "Salary",
    "Business",
    "Honorarios Profesionales",
    "Investment",
    "Other Income",
)

CATEGORY_ICONS: Mapping[str, str] = MappingProxyType({
    "Food and Drink": "food",
    "Transport": "transport",
    "Leisure": "leisure",
    "Home": "home",
    "Health": "health",
    "Education": "education",
    "Pets": "pets",
    "Gifts": "gifts",
    "Shopping": "shopping",
    "Other": "other",
    "Salary": "salary",
    "Business": "business",
    "Honorarios Profesionales": "professional",
    "Investment": "investment",
    "Other Income": "other",
})

# Alternative names a remote model may answer with. Matched case-insensitively.
CATEGORY_ALIASES: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "Food and Drink": ("restaurants", "groceries", "dining"),
    "Transport": ("transportation", "travel", "commute"),
    "Leisure": ("entertainment", "subscriptions"),
    "Home": ("housing", "rent", "utilities"),
    "Health": ("healthcare", "medical", "pharmacy"),
    "Education": ("learning", "tuition"),
    "Pets": ("pet care",),
    "Gifts": ("donations", "charity"),
    "Salary": ("wages", "payroll", "paycheck"),
    "Business": ("sales", "revenue"),
    "Honorarios Profesionales": ("professional fees", "consulting fees", "freelance"),
    "Investment": ("dividends", "interest", "investments"),
})

# Ordered stems for naming an icon from a free category name.
_ICON_HINTS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("pets", ("pet", "mascota", "perro", "gato")),
    ("gifts", ("gift", "regalo", "donation", "donación")),
    ("food", ("food", "comida", "restaurant", "grocer", "supermercado")),
    ("transport", ("transport", "uber", "gasolina", "fuel", "travel", "viaje")),
    ("leisure", ("leisure", "ocio", "cine", "entertainment")),
    ("home", ("home", "hogar", "rent", "renta", "luz", "utilit")),
    ("health", ("health", "salud", "farmacia", "pharmacy", "doctor")),
    ("education", ("educa", "curso", "course", "libro", "book")),
    ("salary", ("salary", "sueldo", "nomina", "nómina", "payroll")),
    ("business", ("business", "venta", "negocio", "sales")),
    ("professional", ("honorarios", "professional", "freelance")),
    ("investment", ("invest", "inversión", "ahorro", "saving", "financiero", "prestamo", "loan")),
)


def guess_icon(name: str) -> str:
    """Best-effort icon for a category name outside the taxonomy."""
    lowered = (name or "").lower()
    for icon, stems in _ICON_HINTS:
        if any(stem in lowered for stem in stems):
            return icon
    return DEFAULT_ICON


@dataclass(frozen=True)
class Taxonomy:
    expense_categories: Tuple[str, ...] = EXPENSE_CATEGORIES
    income_categories: Tuple[str, ...] = INCOME_CATEGORIES
    icons: Mapping[str, str] = field(default_factory=lambda: CATEGORY_ICONS)
    aliases: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: CATEGORY_ALIASES)
    expense_fallback: str = "Other"
    income_fallback: str = "Other Income"
    _alias_index: Dict[str, Tuple[str, ...]] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "expense_categories", tuple(self.expense_categories))
        object.__setattr__(self, "income_categories", tuple(self.income_categories))
        object.__setattr__(self, "icons", MappingProxyType(dict(self.icons)))

        for label, names, fallback in (
            ("expense", self.expense_categories, self.expense_fallback),
            ("income", self.income_categories, self.income_fallback),
        ):
            if not names:
                raise TaxonomyError(f"The {label} category list is empty")
            if any(not name or not name.strip() for name in names):
                raise TaxonomyError(f"Blank name in the {label} category list")
            if len(set(names)) != len(names):
                raise TaxonomyError(f"Duplicate names in the {label} category list")
            if fallback not in names:
                raise TaxonomyError(f"Catch-all '{fallback}' missing from the {label} list")

        for name in self.expense_categories + self.income_categories:
            icon = self.icons.get(name)
            if icon is None:
                raise TaxonomyError(f"Category '{name}' has no icon mapping")
            if icon not in ICON_REGISTRY:
                raise TaxonomyError(f"Icon '{icon}' for '{name}' is not a known icon")

        known = set(self.expense_categories) | set(self.income_categories)
        index = {}
        for name, alias_list in self.aliases.items():
            if name not in known:
                raise TaxonomyError(f"Aliases given for unknown category '{name}'")
            index[name] = tuple(a.strip().lower() for a in alias_list if a and a.strip())
        object.__setattr__(self, "_alias_index", index)

    def categories_for(self, tx_type: TransactionType) -> Tuple[str, ...]:
        if tx_type == TransactionType.INCOME:
            return self.income_categories
        return self.expense_categories

    def fallback_for(self, tx_type: TransactionType) -> str:
        if tx_type == TransactionType.INCOME:
            return self.income_fallback
        return self.expense_fallback

    def is_allowed(self, category: str, tx_type: TransactionType) -> bool:
        return category in self.categories_for(tx_type)

    def icon_for(self, category: str) -> str:
        return self.icons.get(category) or guess_icon(category)

    def aliases_for(self, category: str) -> Tuple[str, ...]:
        return self._alias_index.get(category, ())


DEFAULT_TAXONOMY = Taxonomy()


def taxonomy_from_config(section: Mapping | None) -> Taxonomy:
    """
    Build a Taxonomy from the optional ``taxonomy`` config section.
    Missing keys keep the built-in values; the result is validated.
    """
    if not section:
        return DEFAULT_TAXONOMY
    icons = dict(CATEGORY_ICONS)
    icons.update(section.get("icons") or {})
    aliases = {
        name: tuple(values or ())
        for name, values in (section.get("aliases") or CATEGORY_ALIASES).items()
    }
    expense = tuple(section.get("expense_categories") or EXPENSE_CATEGORIES)
    income = tuple(section.get("income_categories") or INCOME_CATEGORIES)
    known = set(expense) | set(income)
    return Taxonomy(
        expense_categories=expense,
        income_categories=income,
        icons={name: icon for name, icon in icons.items() if name in known},
        aliases={name: values for name, values in aliases.items() if name in known},
        expense_fallback=section.get("expense_fallback", "Other"),
        income_fallback=section.get("income_fallback", "Other Income"),
    )
