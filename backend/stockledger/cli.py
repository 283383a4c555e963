# Overview: Flask CLI command groups for tenant onboarding and ledger maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
#   List all organizations with member and product counts.
# - python -m flask orgs create --name "Acme Corp" --slug acme --plan premium
#   Create a new organization (tenant) with the plan's default limits.
# - python -m flask orgs add-member --org-id 1 --user-id auth0|abc --role owner
#   Attach a user identity to an organization.
#
# Ledger maintenance:
# - python -m flask ledger reconcile --org-id 1
#   Compare stored stock with ledger-derived quantities (read-only).

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization, OrganizationMember, Product
from .models.tenancy import MEMBER_ROLES, PLANS
from .services.ledger_service import reconcile_stock


# =============================================================================
# ORGANIZATION COMMANDS
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id.asc()).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Slug':<15} {'Plan':<12} {'Members':<8} {'Products'}")
    click.echo("="*80)

    for org in orgs:
        member_count = db.session.query(OrganizationMember).filter_by(organization_id=org.id).count()
        product_count = db.session.query(Product).filter_by(organization_id=org.id).count()
        click.echo(f"{org.id:<5} {org.name:<30} {org.slug or '-':<15} {org.plan:<12} {member_count:<8} {product_count}")

    click.echo("="*80 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--slug', required=True, help='Short slug (unique)')
@click.option('--plan', type=click.Choice(PLANS), default='free', show_default=True)
@with_appcontext
def create_org_cli(name, slug, plan):
    """Create a new organization (tenant)."""
    existing = db.session.query(Organization).filter_by(slug=slug).first()
    if existing:
        click.echo(f"FAIL Organization with slug '{slug}' already exists")
        return

    limits = current_app.config["PLAN_LIMITS"][plan]
    org = Organization(
        name=name,
        slug=slug,
        plan=plan,
        max_products=limits["max_products"],
        max_transactions_per_month=limits["max_transactions_per_month"],
    )
    db.session.add(org)
    db.session.commit()

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Plan: {org.plan})")


@orgs_group.command('add-member')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--user-id', required=True, help='External user identity')
@click.option('--role', type=click.Choice(MEMBER_ROLES), default='member', show_default=True)
@with_appcontext
def add_member_cli(org_id, user_id, role):
    """Attach a user to an organization (one organization per user)."""
    org = db.session.query(Organization).filter_by(id=org_id).first()
    if not org:
        click.echo(f"FAIL Organization ID {org_id} not found")
        return

    existing = db.session.query(OrganizationMember).filter_by(user_id=user_id).first()
    if existing:
        click.echo(f"FAIL User '{user_id}' already belongs to organization {existing.organization_id}")
        return

    db.session.add(OrganizationMember(organization_id=org.id, user_id=user_id, role=role))
    db.session.commit()

    click.echo(f"PASS Added {user_id} to '{org.name}' as {role}")


# =============================================================================
# LEDGER COMMANDS
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Ledger inspection commands."""


@ledger_group.command('reconcile')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def reconcile_cli(org_id):
    """Report products whose stored stock differs from the ledger."""
    report = reconcile_stock(org_id)

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<6} {'Name':<36} {'Stored':>10} {'Ledger':>10} {'Drift':>10}")
    click.echo("="*80)
    for row in report["products"]:
        marker = "" if row["drift"] == 0 else "  <-"
        click.echo(
            f"{row['product_id']:<6} {row['name'][:36]:<36} {row['stock_quantity']:>10} "
            f"{row['ledger_quantity']:>10} {row['drift']:>10}{marker}"
        )
    click.echo("="*80)

    if report["inconsistent_count"]:
        click.echo(f"FAIL {report['inconsistent_count']} product(s) out of step with the ledger")
    else:
        click.echo("PASS Stock matches the ledger for every product")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(ledger_group)
