"""
Flask CLI commands for database and tenant setup.

Commands:
- flask init-db: Create all tables
- flask create-tenant: Create a tenant
- flask create-user: Create a user attached to a tenant (or a platform user)
- flask ledger-check: Compare each product's stock with its ledger
"""

import click
import re
from retail.database import create_all, get_session
from retail.models import Tenant, TenantStatus, AppUser, Product
from retail.decorators.permissions import ROLE_PERMISSIONS, is_platform_role
from retail.services.stock_service import get_ledger_balance

SLUG_PATTERN = r'^[a-z0-9]+(?:-[a-z0-9]+)*$'
EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table that does not exist yet."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-tenant')
    @click.option('--slug', prompt=True, help='Unique tenant slug (lowercase, dashes)')
    @click.option('--name', prompt=True, help='Display name')
    def create_tenant(slug, name):
        """Create a new tenant."""
        if not re.match(SLUG_PATTERN, slug):
            click.echo(click.style('Invalid slug. Use lowercase letters, digits and dashes.', fg='red'))
            return

        db_session = get_session()
        if db_session.query(Tenant).filter_by(slug=slug).first():
            click.echo(click.style(f'A tenant with slug {slug} already exists.', fg='red'))
            return

        try:
            tenant = Tenant(slug=slug, name=name, status=TenantStatus.ACTIVE)
            db_session.add(tenant)
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

        click.echo(click.style('Tenant created.', fg='green', bold=True))
        click.echo(f'   Slug: {slug}')
        click.echo(f'   ID: {tenant.id}')

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='User email address')
    @click.option('--name', 'full_name', prompt=True, help='Full name')
    @click.option('--role', type=click.Choice(sorted(ROLE_PERMISSIONS)), default='VENDEUR', show_default=True)
    @click.option('--tenant', 'tenant_slug', default=None, help='Tenant slug (not needed for platform roles)')
    def create_user(email, full_name, role, tenant_slug):
        """Create a user and attach it to a tenant."""
        if not re.match(EMAIL_PATTERN, email):
            click.echo(click.style('Invalid email. Use user@example.com', fg='red'))
            return

        db_session = get_session()
        if db_session.query(AppUser).filter_by(email=email).first():
            click.echo(click.style(f'A user with email {email} already exists.', fg='red'))
            return

        tenant_id = None
        if tenant_slug:
            tenant = db_session.query(Tenant).filter_by(slug=tenant_slug).first()
            if not tenant:
                click.echo(click.style(f'Tenant {tenant_slug} not found.', fg='red'))
                return
            tenant_id = tenant.id
        elif not is_platform_role(role):
            click.echo(click.style(f'Role {role} needs --tenant.', fg='red'))
            return

        try:
            user = AppUser(email=email, full_name=full_name, role=role, tenant_id=tenant_id, active=True)
            db_session.add(user)
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

        click.echo(click.style('User created.', fg='green', bold=True))
        click.echo(f'   Email: {email}')
        click.echo(f'   Role: {role}')
        click.echo(f'   ID: {user.id}')

    @app.cli.command('ledger-check')
    @click.option('--tenant', 'tenant_slug', default=None, help='Only check one tenant')
    def ledger_check(tenant_slug):
        """
        List products whose stock does not match their ledger.

        A product is balanced when its opening stock plus the sum of its
        ledger entries equals its current stock.
        """
        db_session = get_session()
        query = db_session.query(Product)
        if tenant_slug:
            tenant = db_session.query(Tenant).filter_by(slug=tenant_slug).first()
            if not tenant:
                click.echo(click.style(f'Tenant {tenant_slug} not found.', fg='red'))
                return
            query = query.filter(Product.tenant_id == tenant.id)

        mismatches = 0
        for product in query.order_by(Product.id).all():
            expected = product.initial_stock_qty + get_ledger_balance(db_session, product.id)
            if expected != product.stock_qty:
                mismatches += 1
                click.echo(
                    f'   Product {product.id} ({product.name}): stock {product.stock_qty}, '
                    f'opening {product.initial_stock_qty} + ledger = {expected}'
                )

        db_session.rollback()

        if mismatches:
            click.echo(click.style(f'{mismatches} product(s) out of balance.', fg='yellow'))
        else:
            click.echo(click.style('Stock matches the ledger.', fg='green'))
