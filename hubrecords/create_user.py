# hubrecords/create_user.py
# `flask --app hubrecords create-user` bootstraps accounts, including the first admin.

import click

from hubrecords import app, db
from hubrecords.authentication.rbac import UserRole
from hubrecords.errors import HubError


@app.cli.command('create-user')
@click.option('--email', required=True, help='Login email of the new account.')
@click.option('--password', default=None, help='Password; a strong one is generated when omitted.')
@click.option('--name', default=None, help='Display name.')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.USER.value,
              show_default=True)
def create_user(email, password, name, role):
    """Create a user account with the given role."""
    from hubrecords.routes import credential_store, password_service

    db.create_all()
    generated = password is None
    if generated:
        password = password_service.generate_secure_password()

    try:
        user = credential_store.register(email, password, name=name, role=role)
    except HubError as e:
        raise click.ClickException(e.message)

    click.echo(f"User email: {user['email']}")
    click.echo(f"User id: {user['userId']}")
    click.echo(f"Role: {role}")
    if generated:
        click.echo(f"Generated password: {password}")
    click.echo("User created successfully.")
