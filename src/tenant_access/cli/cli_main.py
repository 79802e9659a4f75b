import json
import traceback
from typing import Optional

import click

from tenant_access.rbac.errors import AccessControlError, ProvisioningPartialFailureError
from tenant_access.rbac.role_mappings import RoleMappingRegistry
from tenant_access.utils.document_store import DocumentStoreError
from tenant_access.utils.logging import get_logger, setup_cli_logging
from tenant_access.utils.service_factory import AccessServiceFactory
from tenant_access.utils.settings import SettingsError, load_settings


@click.group()
@click.option('--config', '-c', 'config_file', type=str, help="Path to tenant-access settings YAML")
@click.option('--verbosity', '-v', type=int, default=3, help="Logging verbosity level (0-4)")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], verbosity: int):
    """Manage role mappings and tenant provisioning."""
    setup_cli_logging(verbosity=verbosity)
    try:
        settings = load_settings(config_file)
    except SettingsError as e:
        raise click.ClickException(str(e))
    ctx.obj = {
        'verbosity': verbosity,
        'factory': AccessServiceFactory.from_settings(settings),
    }


@cli.group('role-mappings')
@click.option('--file', '-f', 'mappings_file', type=str, help="Role mappings YAML (overrides settings)")
@click.pass_context
def role_mappings(ctx: click.Context, mappings_file: Optional[str]):
    """Inspect and edit the role label -> role code registry."""
    factory: AccessServiceFactory = ctx.obj['factory']
    path = mappings_file or factory.settings.role_mappings_path
    # The env override would shadow the file being edited
    registry = RoleMappingRegistry(path, env_var=None)
    registry.initialize()
    ctx.obj['registry'] = registry


def _save(registry: RoleMappingRegistry) -> None:
    try:
        path = registry.save()
    except AccessControlError as e:
        raise click.ClickException(f"Failed to save role mappings: {e}")
    click.echo(f"Saved role mappings to {path}")


@role_mappings.command('list')
@click.option('--json', 'as_json', is_flag=True, help="Print as JSON")
@click.pass_obj
def list_mappings(obj, as_json: bool):
    """List all role mappings."""
    mappings = obj['registry'].get_all_mappings()
    if as_json:
        click.echo(json.dumps(mappings, indent=2, sort_keys=True))
        return
    if not mappings:
        click.echo("No role mappings configured")
        return
    width = max(len(label) for label in mappings)
    for label in sorted(mappings):
        click.echo(f"  {label:{width}}  ->  {mappings[label]}")


@role_mappings.command('add')
@click.argument('label')
@click.argument('code')
@click.option('--actor', type=str, default="cli", help="Recorded in the audit log")
@click.pass_obj
def add_mapping(obj, label: str, code: str, actor: str):
    """Map LABEL to role CODE and save."""
    registry: RoleMappingRegistry = obj['registry']
    try:
        registry.add_mapping(label, code, actor=actor)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"Mapped '{label}' -> {code}")
    _save(registry)


@role_mappings.command('remove')
@click.argument('label')
@click.option('--actor', type=str, default="cli", help="Recorded in the audit log")
@click.pass_obj
def remove_mapping(obj, label: str, actor: str):
    """Remove the mapping for LABEL and save."""
    registry: RoleMappingRegistry = obj['registry']
    if not registry.remove_mapping(label, actor=actor):
        raise click.ClickException(f"No mapping for '{label}'")
    click.echo(f"Removed mapping for '{label}'")
    _save(registry)


@role_mappings.command('reset')
@click.option('--actor', type=str, default="cli", help="Recorded in the audit log")
@click.confirmation_option(prompt="Replace all role mappings with the built-in defaults?")
@click.pass_obj
def reset_mappings(obj, actor: str):
    """Replace every mapping with the built-in defaults and save."""
    registry: RoleMappingRegistry = obj['registry']
    registry.reset_to_defaults(actor=actor)
    click.echo(f"Reset to {len(registry.get_all_mappings())} default mappings")
    _save(registry)


@role_mappings.command('status')
@click.pass_obj
def mappings_status(obj):
    """Show where the mappings were loaded from."""
    status = obj['registry'].get_status().as_dict()
    for key in ('source', 'loaded_at', 'count'):
        click.echo(f"{key:10} {status[key]}")


@cli.command()
@click.argument('tenant_id')
@click.option('--actor', type=str, default="cli", help="Recorded as created/updated by")
@click.pass_obj
def provision(obj, tenant_id: str, actor: str):
    """Copy the baseline permissions and roles into TENANT_ID."""
    logger = get_logger(__name__)
    factory: AccessServiceFactory = obj['factory']
    try:
        result = factory.provisioner.copy_baseline_to_tenant(tenant_id, actor=actor)
    except ProvisioningPartialFailureError as e:
        partial = e.result
        for failure in partial.failures:
            click.echo(f"  failed: {failure.collection}/{failure.record_id}: {failure.error}", err=True)
        raise click.ClickException(
            f"Provisioning incomplete: {partial.permissions_copied} permissions, "
            f"{partial.roles_copied} roles copied, {len(partial.failures)} failed"
        )
    except (ValueError, DocumentStoreError) as e:
        if obj['verbosity'] >= 4:
            traceback.print_exc()
        raise click.ClickException(f"Provisioning failed: {e}")

    logger.debug(f"Provisioning result: {result.as_dict()}")
    if result.permissions_copied == 0 and result.roles_copied == 0:
        backend = factory.settings.store_backend
        hint = " (the memory backend starts empty; configure store_backend: postgres)" if backend == "memory" else ""
        raise click.ClickException(f"Nothing provisioned for {tenant_id}: the baseline is empty{hint}")

    click.echo(
        f"Provisioned {tenant_id}: {result.permissions_copied} permissions, {result.roles_copied} roles"
    )


def main():
    """
    Entrypoint for the tenant-access cli tool implemented using Click.
    """
    cli()
