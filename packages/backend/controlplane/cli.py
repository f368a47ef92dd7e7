"""Operator commands: signing keys, offline license generation, first admin."""

from __future__ import annotations

import asyncio
import datetime
from pathlib import Path

import click
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from controlplane.core.logging_config import configure_logging
from controlplane.core.settings import settings
from controlplane.models.organization import LicenseTier
from controlplane.models.user import UserRole
from controlplane.security.errors import ConfigurationError
from controlplane.security.license import MAX_VALIDITY_DAYS, LicenseCodec
from controlplane.security.tokens import AccessTokenSigner


@click.group()
def cli() -> None:
    configure_logging()


def generate_key_pair(key_size: int = 2048) -> tuple[str, str]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem.decode("ascii"), public_pem.decode("ascii")


@cli.command()
@click.option("--out-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Write private.pem/public.pem here instead of printing them.")
@click.option("--key-size", type=click.IntRange(min=2048), default=2048, show_default=True)
def keygen(out_dir: Path | None, key_size: int) -> None:
    """Generate an RSA key pair for signing licenses or session credentials."""
    private_pem, public_pem = generate_key_pair(key_size)
    if out_dir is None:
        click.echo(private_pem)
        click.echo(public_pem)
        return

    out_dir.mkdir(parents=True, exist_ok=True)
    private_path = out_dir / "private.pem"
    private_path.write_text(private_pem)
    private_path.chmod(0o600)
    (out_dir / "public.pem").write_text(public_pem)
    click.echo(f"Wrote {private_path} and {out_dir / 'public.pem'}")


@cli.command("generate-license")
@click.option("--tier", required=True, type=click.Choice([tier.value for tier in LicenseTier], case_sensitive=False))
@click.option("--organization", "organization_id", default=None, help="Bind the license to one organization.")
@click.option(
    "--days",
    type=click.IntRange(min=1, max=MAX_VALIDITY_DAYS),
    default=settings.license_default_validity_days,
    show_default=True,
)
def generate_license(tier: str, organization_id: str | None, days: int) -> None:
    """Sign a license with LICENSE_PRIVATE_KEY."""
    codec = LicenseCodec(
        private_key=settings.normalized_license_private_key,
        public_key=settings.normalized_license_public_key,
    )
    try:
        license_key = codec.issue(tier.upper(), organization_id, days)
    except ConfigurationError as exc:
        raise click.ClickException("LICENSE_PRIVATE_KEY environment variable is required") from exc

    click.echo(f"Tier: {tier.upper()}")
    click.echo(f"Organization ID: {organization_id or 'Any'}")
    click.echo(f"Expires in: {days} days")
    click.echo(f"License Key: {license_key}")


@cli.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True, prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--first-name", default="Admin", show_default=True)
@click.option("--last-name", default="User", show_default=True)
def create_admin(email: str, password: str, first_name: str, last_name: str) -> None:
    """Create an OWNER account directly in the database."""
    from controlplane.db import model_registry as _model_registry  # noqa: F401
    from controlplane.db.session import SessionLocal
    from controlplane.repositories.sessions import SqlAlchemySessionRepository
    from controlplane.repositories.users import DuplicateEmailError, SqlAlchemyUserRepository
    from controlplane.services.auth import AuthService

    async def _create() -> None:
        async with SessionLocal() as db:
            service = AuthService(
                SqlAlchemyUserRepository(db),
                SqlAlchemySessionRepository(db),
                AccessTokenSigner(
                    private_key=settings.normalized_jwt_private_key,
                    public_key=settings.normalized_jwt_public_key,
                    issuer=settings.jwt_issuer,
                ),
                session_ttl=datetime.timedelta(days=settings.session_ttl_days),
            )
            user = await service.create_user(
                email=email,
                password=password,
                first_name=first_name,
                last_name=last_name,
                role=UserRole.OWNER,
            )
            click.echo("Admin user created successfully!")
            click.echo(f"Email: {user.email}")
            click.echo(f"Role: {user.role.value}")
            click.echo(f"ID: {user.id}")

    try:
        asyncio.run(_create())
    except DuplicateEmailError as exc:
        raise click.ClickException("User with this email already exists") from exc


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
