# finance_flow/core/categorizer.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Tuple

from finance_flow.core.models import CategorizationResult, TransactionType
from finance_flow.core.taxonomy import DEFAULT_TAXONOMY, Taxonomy, TaxonomyError

RULE_CONFIDENCE = 1.0
NO_MATCH_CONFIDENCE = 0.1


@dataclass(frozen=True)
class KeywordRule:
    keywords: Tuple[str, ...]
    category: str
    sub_category: str | None = None


# Ordering matters: earlier matches win, so narrow rules go first.
EXPENSE_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(("uber eats", "rappi", "deliveroo", "just eat", "glovo"), "Food and Drink", "Delivery"),
    KeywordRule(("uber", "lyft", "taxi", "cabify", "bolt ride"), "Transport", "Rides"),
    KeywordRule(("gasolina", "gas station", "fuel", "petrol", "shell"), "Transport", "Fuel"),
    KeywordRule(("metro", "subway", "train", "bus ticket", "transit"), "Transport", "Public Transport"),
    KeywordRule(("parking", "toll", "peaje"), "Transport", "Parking"),
    KeywordRule(("flight", "airline", "vuelo"), "Transport", "Flights"),
    KeywordRule(("pharmacy", "farmacia", "medicine", "doctor", "dentist", "hospital", "clinic"), "Health", None),
    KeywordRule(("gym", "gimnasio"), "Health", "Fitness"),
    KeywordRule(("supermarket", "supermercado", "grocery", "groceries", "mercadona", "walmart", "costco"), "Food and Drink", "Groceries"),
    KeywordRule(("restaurant", "restaurante", "cafe", "coffee", "starbucks", "pizza", "burger", "dinner", "lunch", "cena", "almuerzo"), "Food and Drink", "Restaurants"),
    KeywordRule(("netflix", "spotify", "hbo", "disney+", "prime video", "youtube premium"), "Leisure", "Subscriptions"),
    KeywordRule(("cinema", "cine", "movie", "concert", "theatre", "theater", "videogame"), "Leisure", "Entertainment"),
    KeywordRule(("rent", "renta", "alquiler", "mortgage", "hipoteca"), "Home", "Rent"),
    KeywordRule(("electricity", "luz", "water bill", "internet", "phone bill", "utilities"), "Home", "Utilities"),
    KeywordRule(("vet", "veterinario", "pet food", "mascota", "perro", "cat food"), "Pets", None),
    KeywordRule(("tuition", "course", "curso", "udemy", "book", "libro"), "Education", None),
    KeywordRule(("gift", "regalo", "donation", "donación"), "Gifts", None),
    KeywordRule(("amazon", "mercadolibre", "zara", "clothes", "ropa", "ikea"), "Shopping", None),
)

INCOME_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(("salary", "payroll", "paycheck", "sueldo", "nomina", "nómina", "wage"), "Salary", None),
    KeywordRule(("honorarios", "freelance"), "Honorarios Profesionales", None),
    KeywordRule(("dividend", "interest", "interés", "staking", "rendimiento"), "Investment", None),
    KeywordRule(("venta", "sold", "sale of", "shop revenue"), "Business", "Sales"),
)


def _normalize_rule(rule: KeywordRule) -> KeywordRule:
    keywords = tuple(kw.strip().lower() for kw in rule.keywords if kw and kw.strip())
    return KeywordRule(keywords, rule.category, rule.sub_category)


def rules_from_config(mapping: Mapping | None) -> Tuple[Tuple[KeywordRule, ...], Tuple[KeywordRule, ...]]:
    """
    Turn the ``categories`` config section into (expense_rules, income_rules).

    Entries are either ``{category: [keywords]}`` or
    ``{category: {keywords: [...], sub_category: ..., type: income|expense}}``.
    """
    expense, income = [], []
    for category, entry in (mapping or {}).items():
        if isinstance(entry, Mapping):
            keywords = entry.get("keywords") or []
            sub = entry.get("sub_category")
            kind = str(entry.get("type", "expense")).lower()
        else:
            keywords, sub, kind = entry or [], None, "expense"
        rule = KeywordRule(tuple(keywords), category, sub)
        (income if kind == "income" else expense).append(rule)
    return tuple(expense), tuple(income)


class KeywordClassifier:
    """First-match-wins keyword rules, evaluated in declared order."""

    def __init__(
        self,
        expense_rules: Iterable[KeywordRule] = EXPENSE_RULES,
        income_rules: Iterable[KeywordRule] = INCOME_RULES,
        taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    ):
        self.taxonomy = taxonomy
        self.expense_rules = self._checked(expense_rules, TransactionType.EXPENSE)
        self.income_rules = self._checked(income_rules, TransactionType.INCOME)

    def _checked(self, rules, tx_type):
        checked = []
        for rule in rules:
            if not self.taxonomy.is_allowed(rule.category, tx_type):
                raise TaxonomyError(
                    f"Rule category '{rule.category}' is not a {tx_type.value.lower()} category"
                )
            checked.append(_normalize_rule(rule))
        return tuple(checked)

    def match(self, description: str, is_income: bool) -> KeywordRule | None:
        text = (description or "").strip().lower()
        if not text:
            return None
        rules = self.income_rules if is_income else self.expense_rules
        for rule in rules:
            if any(kw in text for kw in rule.keywords):
                return rule
        return None

    def fallback(self, is_income: bool) -> CategorizationResult:
        tx_type = TransactionType.INCOME if is_income else TransactionType.EXPENSE
        category = self.taxonomy.fallback_for(tx_type)
        return CategorizationResult(
            category=category,
            icon=self.taxonomy.icon_for(category),
            confidence=NO_MATCH_CONFIDENCE,
        )

    def classify(self, description: str, is_income: bool) -> CategorizationResult:
        rule = self.match(description, is_income)
        if rule is None:
            return self.fallback(is_income)
        return CategorizationResult(
            category=rule.category,
            icon=self.taxonomy.icon_for(rule.category),
            confidence=RULE_CONFIDENCE,
            sub_category=rule.sub_category,
        )
