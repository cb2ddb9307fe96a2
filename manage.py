from tkd.app import create_app, db
import os

from flask_migrate import Migrate
from flask.cli import FlaskGroup
import click
from sqlalchemy import func
from flask import current_app
from tkd.models import User
from tkd.shared.acl import normalize_role
from tkd.shared.constants import ENTRY_KINDS, SUPER_ADMIN
from tkd.shared.forms import template_path, write_blank_template
from tkd.shared.passwords import password_problems
from tkd.shared.records import KINDS, recover_max_sequence
from tkd.shared.sequences import seed_counter as seed_sequence
from tkd.shared.storage import upload_dir


migrate = Migrate()


def create_tkd_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_tkd_app)


@cli.command("create_admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", default="Super Admin", show_default=True)
@click.option("--role", default=SUPER_ADMIN, show_default=True)
@click.option("--state", default=None)
@click.option("--district", default=None)
def create_admin(email: str, password: str, name: str, role: str, state, district):
    """Create an admin account (super admin by default)."""
    role_value = normalize_role(role)
    if not role_value:
        click.echo(f"Unknown role {role}", err=True)
        raise SystemExit(1)
    problems = password_problems(password)
    if problems:
        click.echo("Password " + "; ".join(problems), err=True)
        raise SystemExit(1)
    email = email.strip().lower()
    exists = db.session.query(User.id).filter(func.lower(User.email) == email).first()
    if exists:
        click.echo(f"User {email} already exists", err=True)
        raise SystemExit(1)
    user = User(email=email, name=name, role=role_value, state=state, district=district)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    click.echo(f"Created {role_value} {email} (id={user.id})")


@cli.command("seed_counter")
@click.argument("kind", type=click.Choice(ENTRY_KINDS))
def seed_counter(kind: str):
    """Create a sequence counter from the highest entry id already stored."""
    entry_kind = KINDS[kind]
    value, created = seed_sequence(kind, seed=lambda: recover_max_sequence(entry_kind))
    if created:
        click.echo(f"Seeded {kind} counter at {value}")
    else:
        click.echo(f"{kind} counter already at {value}")


@cli.command("gen_sample_templates")
@click.option("--force", is_flag=True, help="Overwrite existing template images")
def gen_sample_templates(force: bool):
    """Write blank placeholder template images for every form."""
    for kind in ENTRY_KINDS:
        path = template_path(kind)
        if os.path.exists(path) and not force:
            click.echo(f"skip {path}")
            continue
        write_blank_template(kind, path)
        click.echo(f"wrote {path}")


@cli.command("purge_orphan_forms")
@click.option(
    "--dry-run", is_flag=True, help="List form images without a record, without deleting"
)
def purge_orphan_forms(dry_run: bool):
    upload_root = current_app.config["UPLOAD_ROOT"]
    if not os.path.isdir(upload_root):
        click.echo("Upload directory missing", err=True)
        return
    if (
        not dry_run
        and current_app.config.get("DEPLOY_ENV") == "production"
        and os.getenv("ALLOW_FORM_PURGE") != "1"
    ):
        click.echo("Refusing to delete in production without ALLOW_FORM_PURGE=1", err=True)
        return

    total = deleted = kept = errors = 0
    samples: list[str] = []
    for kind_name, kind in KINDS.items():
        kind_dir = upload_dir(upload_root, kind_name)
        if not os.path.isdir(kind_dir):
            continue
        for name in sorted(os.listdir(kind_dir)):
            full_path = os.path.join(kind_dir, name)
            if not name.lower().endswith(".png") or not os.path.isfile(full_path):
                continue
            total += 1
            exists = (
                db.session.query(kind.model.id).filter_by(form_file_name=name).first()
            )
            if exists:
                kept += 1
                continue
            if len(samples) < 5:
                samples.append(full_path)
            if dry_run:
                continue
            try:
                os.remove(full_path)
                deleted += 1
            except OSError:
                errors += 1
                current_app.logger.exception("[FORM-PURGE] failed to remove %s", full_path)
    summary = f"scanned={total} deleted={deleted} kept={kept} errors={errors}"
    for path in samples:
        click.echo(path)
    click.echo(summary)
    current_app.logger.info("[FORM-PURGE] %s", summary)


if __name__ == "__main__":
    cli()
