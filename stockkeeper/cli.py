import click
from flask import current_app
from flask.cli import with_appcontext
from stockkeeper.extensions import db
from stockkeeper.models import User
from stockkeeper.models.reference import DEFAULT_REFERENCE_DATA
from stockkeeper.services.expiration import current_expiry_notices


def init_cli(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_admin_command)
    app.cli.add_command(seed_reference_command)
    app.cli.add_command(expiry_scan_command)


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Initialize database tables"""
    db.drop_all()
    db.create_all()
    click.echo("Database tables created fresh.")


@click.command("create-admin")
@click.option('--username', default='admin', help='Admin username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True,
              help='Admin password')
@click.option('--email', default='admin@example.com', help='Admin email')
@with_appcontext
def create_admin_command(username, password, email):
    """Create an admin user"""
    existing_user = User.query.filter_by(username=username).first()
    if existing_user:
        click.echo(f"Admin '{username}' already exists")
        return

    admin = User(
        username=username,
        email=email,
        role=User.ROLE_ADMIN
    )
    admin.set_password(password)

    db.session.add(admin)
    try:
        db.session.commit()
        click.echo(f"Admin '{username}' has been created")
    except Exception as e:
        db.session.rollback()
        click.echo(f"Error creating admin: {str(e)}", err=True)


@click.command("seed-reference")
@with_appcontext
def seed_reference_command():
    """Seed default categories, units, periods and storages"""
    for model, names in DEFAULT_REFERENCE_DATA.items():
        for name in names:
            if not model.query.filter_by(name=name).first():
                db.session.add(model(name=name))
                click.echo(f"Added {model.__tablename__}: {name}")

    try:
        db.session.commit()
        click.echo("Reference data has been seeded successfully!")
    except Exception as e:
        db.session.rollback()
        click.echo(f"Error seeding reference data: {str(e)}", err=True)


@click.command("expiry-scan")
@with_appcontext
def expiry_scan_command():
    """Report lots expiring within the warning window (read-only)"""
    notices = current_expiry_notices()
    if not notices:
        click.echo("No lots expiring soon.")
        return

    for notice in notices:
        line = (
            f"[{notice.severity.upper()}] {notice.name} ({notice.label}) "
            f"expires in {notice.days_remaining} day(s) on {notice.expiration_date}"
        )
        if notice.severity == 'urgent':
            current_app.logger.warning(line)
        else:
            current_app.logger.info(line)
        click.echo(line)
    click.echo(f"{len(notices)} lot(s) expiring soon.")
