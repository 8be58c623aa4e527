# finance_flow/cli.py
import logging
from dataclasses import replace
from datetime import datetime

import anyio
import click
from dotenv import load_dotenv

from finance_flow.ai.advice import AdviceReport
from finance_flow.categorization import build_categorizer, build_remote_classifier
from finance_flow.config import load_config
from finance_flow.core.aggregation import category_breakdown, dashboard_summary, filter_by_month
from finance_flow.core.models import (
    Account,
    AccountType,
    RecurrenceFrequency,
    Transaction,
    TransactionTemplate,
    TransactionType,
)
from finance_flow.core.taxonomy import taxonomy_from_config
from finance_flow.loaders import get_loader
from finance_flow.outputs import get_output
from finance_flow.recurring import expand_recurrence
from finance_flow.stores import get_store
from finance_flow.templates import apply_template
from finance_flow.utils import dedupe_transactions, new_id, parse_timestamp

TYPE_CHOICE = click.Choice(['expense', 'income'], case_sensitive=False)


def _store(ctx):
    cfg = ctx.obj['config']
    try:
        return get_store(cfg['store'], cfg)
    except ValueError as e:
        raise click.ClickException(str(e))


def _parse_date(value):
    if value is None:
        return datetime.now().replace(microsecond=0)
    try:
        return parse_timestamp(value)
    except ValueError:
        raise click.BadParameter(f"'{value}' is not an ISO date", param_hint='--date')


def _require_account(store, account_id):
    if not any(acc.id == account_id for acc in store.load_accounts()):
        raise click.ClickException(f"Unknown account '{account_id}'. Create it with 'accounts add'.")


def _money(value):
    return f"{value:,.2f}"


@click.group()
@click.option(
    '--config', 'config_path',
    default='config.yaml',
    type=click.Path(dir_okay=False),
    help='Path to config.yaml (defaults are used when it does not exist)'
)
@click.option(
    '--env-file', 'env_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Optional .env file containing API tokens for AI providers'
)
@click.option('--verbose', is_flag=True, default=False, help='Enable debug logging.')
@click.pass_context
def main(ctx, config_path, env_file, verbose):
    """
    Track income and expenses across accounts, categorize descriptions with
    keyword rules and an optional AI model, and print dashboard summaries.
    """
    if env_file:
        load_dotenv(env_file)
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        cfg = load_config(config_path)
    except ValueError as e:
        raise click.ClickException(str(e))
    ctx.obj = {'config': cfg}


@main.command()
@click.argument('description')
@click.option('--type', 'tx_type', default='expense', type=TYPE_CHOICE, help='Transaction type')
@click.pass_context
def categorize(ctx, description, tx_type):
    """Suggest a category for DESCRIPTION."""
    categorizer = build_categorizer(ctx.obj['config'])
    result = anyio.run(categorizer.categorize, description, tx_type)
    sub = f" / {result.sub_category}" if result.sub_category else ""
    click.echo(f"{result.category}{sub} [{result.icon}] confidence={result.confidence:.2f}")


@main.command()
@click.option('--account', 'account_id', required=True, help='Account id')
@click.option('--amount', required=True, type=float, help='Non-negative amount')
@click.option('--description', required=True, help='Free-text description')
@click.option('--type', 'tx_type', default='expense', type=TYPE_CHOICE)
@click.option('--date', 'date_str', default=None, help='ISO date (default: now)')
@click.option('--category', default=None, help='Skip auto-categorization and use this category')
@click.option('--sub-category', 'sub_category', default=None)
@click.option('--repeat', default=1, type=click.IntRange(min=1), help='Number of occurrences')
@click.option(
    '--frequency',
    default='none',
    type=click.Choice([f.value.lower() for f in RecurrenceFrequency], case_sensitive=False),
)
@click.pass_context
def add(ctx, account_id, amount, description, tx_type, date_str, category, sub_category, repeat, frequency):
    """Record a transaction, optionally repeated."""
    if amount < 0:
        raise click.BadParameter('amount must not be negative', param_hint='--amount')
    cfg = ctx.obj['config']
    store = _store(ctx)
    _require_account(store, account_id)
    kind = TransactionType(tx_type.upper())
    taxonomy = taxonomy_from_config(cfg.get('taxonomy'))

    if category:
        if not taxonomy.is_allowed(category, kind):
            raise click.BadParameter(
                f"'{category}' is not one of: {', '.join(taxonomy.categories_for(kind))}",
                param_hint='--category',
            )
        icon = taxonomy.icon_for(category)
    else:
        result = anyio.run(build_categorizer(cfg).categorize, description, kind)
        category, icon = result.category, result.icon
        sub_category = sub_category or result.sub_category

    draft = Transaction(
        id=new_id(),
        account_id=account_id,
        amount=amount,
        description=description.strip(),
        category=category,
        type=kind,
        date=_parse_date(date_str),
        icon=icon,
        sub_category=sub_category,
    )
    count = repeat if frequency != 'none' or repeat > 1 else None
    try:
        created = expand_recurrence(draft, frequency, count=count)
    except ValueError as e:
        raise click.ClickException(str(e))
    store.upsert_transactions(created)
    for tx in created:
        click.echo(f"{tx.id} {tx.date.date().isoformat()} {tx.category} {_money(tx.amount)}")
    click.echo(f"Added {len(created)} transaction(s).")


@main.command()
@click.argument('transaction_id')
@click.pass_context
def delete(ctx, transaction_id):
    """Delete one transaction."""
    if not _store(ctx).delete_transaction(transaction_id):
        raise click.ClickException(f"No transaction with id '{transaction_id}'")
    click.echo(f"Deleted {transaction_id}.")


# -----------------------------------------------------------------------------
# accounts
# -----------------------------------------------------------------------------

@main.group()
def accounts():
    """Manage accounts."""


@accounts.command('list')
@click.pass_context
def accounts_list(ctx):
    store = _store(ctx)
    accs = store.load_accounts()
    if not accs:
        click.echo("No accounts yet.")
        return
    balances = dashboard_summary(store.load_transactions(), accs, window='all')['balances']
    for acc in accs:
        click.echo(f"{acc.id}  {acc.name}  {acc.type.value}  {_money(balances[acc.id])}")


@accounts.command('add')
@click.option('--name', required=True)
@click.option(
    '--type', 'acc_type', default='savings',
    type=click.Choice([t.value.lower() for t in AccountType], case_sensitive=False),
)
@click.option('--color', default='#6366f1')
@click.option('--id', 'account_id', default=None, help='Explicit id (default: generated)')
@click.pass_context
def accounts_add(ctx, name, acc_type, color, account_id):
    account = Account(id=account_id or new_id(), name=name.strip(), type=AccountType(acc_type.upper()), color=color)
    _store(ctx).upsert_account(account)
    click.echo(f"Created account {account.id} ({account.name}).")


@accounts.command('delete')
@click.argument('account_id')
@click.confirmation_option(prompt='Delete this account and all of its transactions?')
@click.pass_context
def accounts_delete(ctx, account_id):
    store = _store(ctx)
    _require_account(store, account_id)
    store.delete_account(account_id)
    click.echo(f"Deleted account {account_id}.")


# -----------------------------------------------------------------------------
# templates
# -----------------------------------------------------------------------------

@main.group()
def templates():
    """Manage reusable transaction templates."""


@templates.command('list')
@click.pass_context
def templates_list(ctx):
    items = _store(ctx).load_templates()
    if not items:
        click.echo("No templates yet.")
    for tpl in items:
        click.echo(f"{tpl.id}  {tpl.name}  {tpl.type.value}  {tpl.category}  {_money(tpl.amount)}")


@templates.command('add')
@click.option('--name', required=True)
@click.option('--account', 'account_id', required=True)
@click.option('--amount', required=True, type=click.FloatRange(min=0))
@click.option('--description', required=True)
@click.option('--type', 'tx_type', default='expense', type=TYPE_CHOICE)
@click.option('--category', default=None)
@click.pass_context
def templates_add(ctx, name, account_id, amount, description, tx_type, category):
    cfg = ctx.obj['config']
    store = _store(ctx)
    _require_account(store, account_id)
    kind = TransactionType(tx_type.upper())
    taxonomy = taxonomy_from_config(cfg.get('taxonomy'))
    category = category or taxonomy.fallback_for(kind)
    if not taxonomy.is_allowed(category, kind):
        raise click.BadParameter(f"'{category}' is not a {tx_type} category", param_hint='--category')
    template = TransactionTemplate(
        id=new_id(), name=name, account_id=account_id, amount=amount,
        description=description, category=category, type=kind, icon=taxonomy.icon_for(category),
    )
    store.upsert_template(template)
    click.echo(f"Created template {template.id} ({template.name}).")


@templates.command('apply')
@click.argument('template_id')
@click.option('--date', 'date_str', default=None)
@click.option('--amount', default=None, type=click.FloatRange(min=0), help='Override the template amount')
@click.pass_context
def templates_apply(ctx, template_id, date_str, amount):
    store = _store(ctx)
    template = next((t for t in store.load_templates() if t.id == template_id), None)
    if template is None:
        raise click.ClickException(f"No template with id '{template_id}'")
    tx = apply_template(template, _parse_date(date_str))
    if amount is not None:
        tx = replace(tx, amount=amount)
    store.upsert_transaction(tx)
    click.echo(f"Added {tx.id} from template '{template.name}'.")


# -----------------------------------------------------------------------------
# reports
# -----------------------------------------------------------------------------

@main.command()
@click.option('--window', default='month', type=click.Choice(['month', 'year', 'all']))
@click.option('--account', 'account_id', default=None)
@click.pass_context
def summary(ctx, window, account_id):
    """Print balances, the monthly comparison and the category breakdown."""
    store = _store(ctx)
    accs = store.load_accounts()
    data = dashboard_summary(store.load_transactions(), accs, window=window, account_id=account_id)

    t = data['totals']
    click.echo(f"Balance: {_money(t['balance'])}  (income {_money(t['income'])}, expenses {_money(t['expenses'])})")
    for acc in accs:
        click.echo(f"  {acc.name}: {_money(data['balances'][acc.id])}")
    cmp = data['comparison']
    click.echo(
        f"This month: {_money(cmp['current'])}  previous: {_money(cmp['previous'])}  "
        f"change: {cmp['percent_change']:+.1f}%"
    )
    p = data['period_totals']
    click.echo(f"Last {window}: income {_money(p['income'])}, expenses {_money(p['expenses'])}")
    _echo_breakdown(data['breakdown'])


@main.command()
@click.option('--year', type=int, default=None, help='Calendar year (default: current)')
@click.option('--month', type=click.IntRange(1, 12), default=None, help='Month 1-12 (omit for the whole year)')
@click.pass_context
def report(ctx, year, month):
    """Category breakdown for a calendar month or year."""
    year = year or datetime.now().year
    selected = filter_by_month(_store(ctx).load_transactions(), year, month)
    if not selected:
        click.echo("No data for this period.")
        return
    _echo_breakdown(category_breakdown(selected))


def _echo_breakdown(rows):
    for row in rows:
        click.echo(f"{row['type']:<8} {row['category']:<26} {_money(row['total']):>12}  {row['percentage']:5.1f}%")
        for sub in row['subcategories']:
            click.echo(f"           # {sub['name']:<22} {_money(sub['total']):>12}")


@main.command()
@click.pass_context
def advice(ctx):
    """Ask the AI advisor for short tips based on recent transactions."""
    cfg = ctx.obj['config']
    transactions = _store(ctx).load_transactions()
    settings = cfg.get('advice') or {}
    advisor = AdviceReport(
        min_transactions=int(settings.get('min_transactions', 5)),
        sample_size=int(settings.get('sample_size', 50)),
    )
    remote = build_remote_classifier(cfg) if len(transactions) >= advisor.min_transactions else None
    click.echo(anyio.run(advisor.generate, transactions, remote))


# -----------------------------------------------------------------------------
# import / export
# -----------------------------------------------------------------------------

@main.command()
@click.option('--output', 'output_format', default='csv', type=click.Choice(['csv', 'json']))
@click.pass_context
def export(ctx, output_format):
    """Export transactions to CSV, or everything to a JSON backup."""
    store = _store(ctx)
    outputter = get_output(output_format, ctx.obj['config'])
    path = outputter.write(store.load_transactions(), store.load_accounts(), store.load_templates())
    click.echo(f"Exported to {path}")


@main.command('import')
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--account', 'account_id', required=True)
@click.option('--categorize/--keep-categories', 'recategorize', default=False,
              help='Re-categorize every row instead of only rows without a valid category')
@click.option('--dayfirst', is_flag=True, default=False, help='Dates are DD/MM/YYYY')
@click.pass_context
def import_(ctx, file_path, account_id, recategorize, dayfirst):
    """Import transactions from a CSV file into ACCOUNT."""
    cfg = ctx.obj['config']
    store = _store(ctx)
    _require_account(store, account_id)
    loader = get_loader('csv', cfg, dayfirst=dayfirst)
    try:
        loaded = list(loader.load(file_path, account_id))
    except RuntimeError as e:
        raise click.ClickException(str(e))

    categorizer = build_categorizer(cfg)

    async def _categorize_all():
        out = []
        for tx in loaded:
            if recategorize or not categorizer.taxonomy.is_allowed(tx.category, tx.type):
                result = await categorizer.categorize(tx.description, tx.type)
                tx = replace(tx, category=result.category, icon=result.icon,
                             sub_category=tx.sub_category or result.sub_category)
            out.append(tx)
        return out

    categorized = anyio.run(_categorize_all)
    existing = store.load_transactions()
    known = {id(tx) for tx in existing}
    fresh = [tx for tx in dedupe_transactions(existing + categorized) if id(tx) not in known]
    store.upsert_transactions(fresh)
    click.echo(f"Imported {len(fresh)} transaction(s); skipped {len(loaded) - len(fresh)} duplicate(s).")


@main.command()
@click.argument('backup_path', type=click.Path(exists=True, dir_okay=False))
@click.confirmation_option(prompt='Restoring overwrites all current data. Continue?')
@click.pass_context
def restore(ctx, backup_path):
    """Replace the local data with a JSON backup."""
    store = _store(ctx)
    local = getattr(store, 'local', store)
    if not hasattr(local, 'import_backup'):
        raise click.ClickException("The configured store cannot restore JSON backups")
    counts = local.import_backup(backup_path)
    click.echo(
        f"Restored {counts['accounts']} account(s), {counts['transactions']} transaction(s) "
        f"and {counts['templates']} template(s)."
    )
