"""
CLI Commands for ledger administration.

# Seed a demo tenant (safe to re-run)
flask ledger seed-demo --tenant-id=demo

# Inspect an account
flask ledger balance --tenant-id=demo --user-id=user-1 --limit=20

# Check that the stored balance matches the ledger (exit code 1 on mismatch)
flask ledger audit --tenant-id=demo --user-id=user-1
"""
from datetime import timedelta
from decimal import Decimal

import click
from flask.cli import with_appcontext

from ..extensions import db
from ..models.campaign import Campaign, CampaignStatus, CampaignType, DiscountType
from ..models.rules import AccrualRule, AccrualRuleType
from ..services.balance_store import BalanceStore
from ..services.transaction_log import TransactionLog
from ..utils.clock import utcnow
from ..utils.money import ZERO, q2, to_decimal

DEMO_TENANT_ID = 'demo-tenant'


@click.group('ledger')
def ledger_cli():
    """Points ledger commands."""
    pass


@ledger_cli.command('seed-demo')
@click.option('--tenant-id', default=DEMO_TENANT_ID, show_default=True, help='Tenant to seed')
@with_appcontext
def seed_demo(tenant_id):
    """
    Seed one points-per-dollar rule and two example campaigns.

    Existing rows with the same names are left alone.
    """
    now = utcnow()
    created = 0

    if not AccrualRule.query.filter_by(tenant_id=tenant_id, name='Points per Dollar').first():
        db.session.add(AccrualRule(
            tenant_id=tenant_id,
            name='Points per Dollar',
            description='Earn 1 point for every dollar spent',
            rule_type=AccrualRuleType.POINTS_PER_CURRENCY.value,
            is_active=True,
            points_per_currency=Decimal('1'),
            points_to_currency_rate=Decimal('0.01'),
            points_expiry_days=365,
        ))
        created += 1

    campaigns = [
        dict(
            name='10% Off Orders Above $100',
            description='Get 10% off on orders above $100',
            campaign_type=CampaignType.DISCOUNT_ORDER_BASED.value,
            min_order_value=Decimal('100'),
            discount_type=DiscountType.PERCENTAGE.value,
            discount_value=Decimal('10'),
            max_discount_cap=Decimal('50'),
            usage_limit_per_user=5,
            global_usage_limit=1000,
        ),
        dict(
            name='$20 Off with 1000 Points',
            description='Redeem 1000 points for $20 off your order',
            campaign_type=CampaignType.DISCOUNT_REWARD_BASED.value,
            points_required=1000,
            discount_type=DiscountType.FIXED.value,
            discount_value=Decimal('20'),
            usage_limit_per_user=10,
            cooldown_hours=24,
        ),
    ]

    for fields in campaigns:
        if Campaign.query.filter_by(tenant_id=tenant_id, name=fields['name']).first():
            continue
        db.session.add(Campaign(
            tenant_id=tenant_id,
            status=CampaignStatus.ACTIVE.value,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=365),
            **fields
        ))
        created += 1

    db.session.commit()

    click.echo(f"Seeded tenant {tenant_id}: {created} new row(s)")
    for campaign in Campaign.query.filter_by(tenant_id=tenant_id).order_by(Campaign.created_at).all():
        click.echo(f"  {campaign.id}  {campaign.name} ({campaign.campaign_type})")


@ledger_cli.command('balance')
@click.option('--tenant-id', required=True, help='Tenant ID')
@click.option('--user-id', required=True, help='User ID')
@click.option('--limit', type=int, default=10, show_default=True, help='Recent entries to show')
@with_appcontext
def show_balance(tenant_id, user_id, limit):
    """Show an account's balance and its latest ledger entries."""
    balance = BalanceStore().get(user_id, tenant_id)
    entries = TransactionLog().history(user_id, tenant_id, limit=limit)

    click.echo(f"\nAccount {user_id} (tenant {tenant_id}):")
    click.echo(f"  Balance: {q2(to_decimal(balance.balance, ZERO))} pts")
    if balance.expires_at:
        click.echo(f"  Expires: {balance.expires_at.isoformat()}")

    if not entries:
        click.echo("  No transactions")
        return

    click.echo(f"\n  Latest {len(entries)} transaction(s):")
    for entry in entries:
        click.echo(
            f"    #{entry.id} {entry.created_at:%Y-%m-%d %H:%M} {entry.transaction_type:<9} "
            f"{entry.amount:>10} -> {entry.balance_after}  {entry.description or ''}"
        )


@ledger_cli.command('audit')
@click.option('--tenant-id', required=True, help='Tenant ID')
@click.option('--user-id', required=True, help='User ID')
@with_appcontext
def audit_account(tenant_id, user_id):
    """
    Verify that the stored balance equals the sum of ledger entries.

    Exits with status 1 when they differ.
    """
    balance = q2(to_decimal(BalanceStore().get(user_id, tenant_id).balance, ZERO))
    total = TransactionLog().total(user_id, tenant_id)

    click.echo(f"Account {user_id} (tenant {tenant_id})")
    click.echo(f"  Stored balance: {balance}")
    click.echo(f"  Ledger total:   {total}")

    if balance != total:
        raise click.ClickException(f"Balance mismatch: stored {balance}, ledger {total}")

    click.echo("  OK")


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(ledger_cli)
