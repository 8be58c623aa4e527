import pytest

from finance_flow.core.models import TransactionType
from finance_flow.core.taxonomy import (
    CATEGORY_ICONS,
    DEFAULT_TAXONOMY,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    ICON_REGISTRY,
    Taxonomy,
    TaxonomyError,
    guess_icon,
    taxonomy_from_config,
)


def test_every_category_has_a_known_icon():
    for name in EXPENSE_CATEGORIES + INCOME_CATEGORIES:
        assert CATEGORY_ICONS[name] in ICON_REGISTRY


def test_fallbacks_live_in_their_lists():
    assert DEFAULT_TAXONOMY.fallback_for(TransactionType.EXPENSE) == "Other"
    assert DEFAULT_TAXONOMY.fallback_for(TransactionType.INCOME) == "Other Income"
    assert DEFAULT_TAXONOMY.is_allowed("Other", TransactionType.EXPENSE)
    assert not DEFAULT_TAXONOMY.is_allowed("Other", TransactionType.INCOME)


def test_categories_for_type():
    assert DEFAULT_TAXONOMY.categories_for(TransactionType.INCOME) == INCOME_CATEGORIES
    assert "Transport" in DEFAULT_TAXONOMY.categories_for(TransactionType.EXPENSE)


def test_constants_are_read_only():
    with pytest.raises(TypeError):
        CATEGORY_ICONS["Transport"] = "pets"


def test_missing_icon_is_rejected():
    icons = dict(CATEGORY_ICONS)
    del icons["Pets"]
    with pytest.raises(TaxonomyError):
        Taxonomy(icons=icons)


def test_unknown_icon_is_rejected():
    icons = dict(CATEGORY_ICONS, Pets="dragon")
    with pytest.raises(TaxonomyError):
        Taxonomy(icons=icons)


def test_fallback_must_be_listed():
    with pytest.raises(TaxonomyError):
        Taxonomy(expense_categories=("Transport",), icons=CATEGORY_ICONS)


def test_icon_for_unknown_category_is_guessed():
    assert DEFAULT_TAXONOMY.icon_for("Transport") == "transport"
    assert guess_icon("Supermercado") == "food"
    assert guess_icon("Something odd") == "shopping"


def test_taxonomy_from_config_overrides_lists():
    tax = taxonomy_from_config({
        "expense_categories": ["Food and Drink", "Other"],
        "income_categories": ["Salary", "Other Income"],
    })
    assert tax.categories_for(TransactionType.EXPENSE) == ("Food and Drink", "Other")
    assert tax.aliases_for("Salary") == ("wages", "payroll", "paycheck")
    assert tax.aliases_for("Transport") == ()


def test_taxonomy_from_empty_config_is_default():
    assert taxonomy_from_config(None) is DEFAULT_TAXONOMY


def test_default_construction_uses_builtin_tables():
    tax = Taxonomy()
    assert tax == DEFAULT_TAXONOMY
    assert tax.icon_for("Honorarios Profesionales") == "professional"
    assert "professional fees" in tax.aliases_for("Honorarios Profesionales")
