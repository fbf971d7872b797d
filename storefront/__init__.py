import json
import click
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from werkzeug.middleware.proxy_fix import ProxyFix
from config import config

db = SQLAlchemy()


def create_app(config_name='default'):
    """Application factory — creates and configures the Flask app."""
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # ── Logging ───────────────────────────────────────────────────
    from storefront.utils.logging import setup_logging
    setup_logging(app)

    # ── Extensions ────────────────────────────────────────────────
    db.init_app(app)

    # ── Blueprints ────────────────────────────────────────────────
    from storefront.rates import rates as rates_blueprint
    app.register_blueprint(rates_blueprint, url_prefix='/rates')

    from storefront.catalog import catalog as catalog_blueprint
    app.register_blueprint(catalog_blueprint, url_prefix='/products')

    from storefront.cart import cart as cart_blueprint
    app.register_blueprint(cart_blueprint, url_prefix='/cart')

    from storefront.auth import auth as auth_blueprint
    app.register_blueprint(auth_blueprint, url_prefix='/auth')

    from storefront.settings import models  # noqa: F401  — registers SiteSetting with SQLAlchemy

    # ── Error Handlers ────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'error': 'Not found.'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({'error': 'Method not allowed.'}), 405

    @app.errorhandler(500)
    def internal_error(e):
        db.session.rollback()
        app.logger.error(f"Unhandled error: {e}")
        return jsonify({'error': 'Something went wrong. Please try again.'}), 500

    # ── CLI Commands ──────────────────────────────────────────────
    register_commands(app)

    # ── ProxyFix (HTTPS termination at the load balancer) ──
    if not app.config.get('TESTING'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app


def register_commands(app):
    """Register custom Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        db.create_all()
        click.echo('✅  Database tables created.')

    @app.cli.command('set-rate')
    @click.option('--rate-22k', required=True, type=float, help='22K gold, per gram')
    @click.option('--rate-24k', required=True, type=float, help='24K gold, per gram')
    @click.option('--rate-18k', type=float, default=None, help='18K gold, per gram (optional)')
    @click.option('--silver',   type=float, default=None, help='Silver, per gram (optional)')
    @click.option('--source',   default='manual', show_default=True)
    def set_rate(rate_22k, rate_24k, rate_18k, silver, source):
        """Publish a new current metal rate. Older rows are kept as history."""
        from storefront.rates.provider import publish_rate

        if min(r for r in (rate_22k, rate_24k, rate_18k, silver) if r is not None) <= 0:
            click.echo('⚠️  Rates must be positive.')
            return

        row = publish_rate(rate_22k=str(rate_22k), rate_24k=str(rate_24k),
                           rate_18k=str(rate_18k) if rate_18k is not None else None,
                           silver_rate=str(silver) if silver is not None else None,
                           source=source)
        click.echo(f'✅  Rate for {row.effective_date} published: 22K {row.rate_22k} / 24K {row.rate_24k}.')

    @app.cli.command('show-rates')
    @click.option('--days', default=7, show_default=True)
    def show_rates(days):
        """Show recent rate history (diagnostic)."""
        from storefront.rates.provider import DatabaseRateProvider

        snapshots = DatabaseRateProvider().get_rate_history(days)
        if not snapshots:
            click.echo('No rates found. Run flask set-rate first.')
            return
        click.echo(f'{"Date":<12} {"22K":>10} {"24K":>10} {"18K":>10}  {"Source"}')
        click.echo('─' * 56)
        for s in snapshots:
            click.echo(f'{s.effective_date.isoformat():<12} {s.rate_22k:>10} {s.rate_24k:>10} '
                       f'{str(s.rate_18k or "-"):>10}  {s.source}')

    @app.cli.command('set-setting')
    @click.argument('key')
    @click.argument('value')
    @click.option('--description', default=None)
    def set_setting_cmd(key, value, description):
        """Store a site setting, e.g.  flask set-setting gst_rate_percent '{"rate": 3}'"""
        from storefront.settings import set_setting

        try:
            parsed = json.loads(value)
        except ValueError:
            click.echo('⚠️  VALUE must be a JSON object.')
            return
        if not isinstance(parsed, dict):
            click.echo('⚠️  VALUE must be a JSON object.')
            return

        set_setting(key, parsed, description)
        click.echo(f'✅  Setting "{key}" saved.')

    @app.cli.command('seed-user')
    @click.option('--name',     prompt='Full name',  help='Full name')
    @click.option('--username', prompt='Username',   help='Login name')
    @click.option('--password', prompt=True, hide_input=True,
                  confirmation_prompt=True, help='Password')
    @click.option('--admin', is_flag=True, default=False, help='Create an admin account')
    def seed_user(name, username, password, admin):
        """Create a shopper (or admin) account."""
        from storefront.auth.models import User, RoleEnum

        if User.query.filter_by(username=username).first():
            click.echo(f'⚠️  User "{username}" already exists.')
            return

        user = User(name=name, username=username,
                    role=RoleEnum.admin if admin else RoleEnum.customer)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f'✅  User "{username}" created successfully.')

    @app.cli.command('seed-demo')
    def seed_demo():
        """Populate database with demo data."""
        from storefront.demo import seed_demo_data

        click.echo("🌱 Seeding demo data...")
        db.create_all()
        for message in seed_demo_data():
            click.echo(f"✅ {message}")
        click.echo("✅ Demo seed complete.")
