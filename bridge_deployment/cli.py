#!/usr/bin/python3
import asyncio
from itertools import groupby
from pathlib import Path
from typing import Dict, Optional

import click
import yaml

from bridge_deployment.ape_deployer import ApeProxyDeployer
from bridge_deployment.confirm import _continue
from bridge_deployment.errors import DeploymentConfigError, LedgerError
from bridge_deployment.executor import Executor
from bridge_deployment.ledger import DeploymentStatus, Ledger
from bridge_deployment.options import (
    account_option,
    autosign_option,
    chain_option,
    ledger_option,
    manifest_option,
    max_parallel_option,
    proxy_owner_option,
    resume_option,
    verify_option,
)
from bridge_deployment.plan import DeploymentPlan

STATUS_COLORS = {
    DeploymentStatus.SUCCEEDED: "cyan",
    DeploymentStatus.FAILED: "red",
    DeploymentStatus.PENDING: "yellow",
}


def get_deploy_fn(
    chains: Dict[str, str],
    account: Optional[str],
    autosign: bool,
    verify: bool,
    proxy_owner: Optional[str],
):
    """Returns the ape-backed proxy deployer for the manifest's chains."""
    return ApeProxyDeployer.from_alias(
        chains=chains,
        alias=account,
        autosign=autosign,
        verify=verify,
        proxy_owner=proxy_owner,
    )


def _load_ledger(filepath: Path, resume: bool) -> Ledger:
    if not filepath.exists():
        if resume:
            print(f"(i) No ledger found at {filepath}; starting a fresh deployment.")
        return Ledger()

    if not resume:
        raise click.ClickException(
            f"Ledger already exists at {filepath}. Use --resume to continue that deployment."
        )

    print(f"Resuming from ledger at {filepath}.")
    try:
        return Ledger.read(filepath)
    except (LedgerError, ValueError) as e:
        raise click.ClickException(f"Cannot read ledger at {filepath}: {e}")


def _check_resumed_ledger(plan: DeploymentPlan, ledger: Ledger) -> None:
    """Checks that the ledger of a previous run describes the same deployment."""
    units = {(unit.chain, unit.name): unit for unit in plan.units}
    for record in ledger.records():
        unit = units.get(record.key)
        if unit is None:
            print(f"(i) Ledger entry {record.unit_name} on {record.chain} is not in the manifest.")
        elif unit.contract_type != record.contract_type:
            raise click.ClickException(
                f"Ledger records {record.unit_name} as {record.contract_type}, "
                f"but the manifest deploys {unit.contract_type}."
            )


@click.group()
def cli():
    """Multi-chain upgradeable proxy deployments."""


@cli.command()
@manifest_option
@resume_option
@ledger_option
@account_option
@autosign_option
@verify_option
@proxy_owner_option
@max_parallel_option
def deploy(
    manifest, resume, ledger_filepath, account, autosign, verify, proxy_owner, max_parallel
):
    """Deploy and initialize every proxy of a manifest, in dependency order."""
    try:
        plan = DeploymentPlan.from_yaml(filepath=manifest)
    except yaml.YAMLError as e:
        raise click.ClickException(f"Cannot parse manifest {manifest}: {e}")
    except DeploymentConfigError as e:
        raise click.ClickException(str(e))

    ledger_filepath = ledger_filepath or plan.ledger_filepath
    ledger = _load_ledger(ledger_filepath, resume=resume)
    _check_resumed_ledger(plan, ledger)
    plan.print_summary()

    deploy_fn = get_deploy_fn(
        chains=plan.chains,
        account=account,
        autosign=autosign,
        verify=verify,
        proxy_owner=proxy_owner,
    )
    try:
        deploy_fn.validate(plan.units)
    except ValueError as e:
        raise click.ClickException(f"Invalid deployment: {e}")
    if not autosign:
        # Confirms the start of the deployment.
        _continue()

    ledger.persist_to(ledger_filepath)
    executor = Executor(deploy_fn=deploy_fn, ledger=ledger, max_parallel=max_parallel)
    try:
        asyncio.run(executor.run(plan.units))
    finally:
        ledger.write(ledger_filepath)
        print(f"(i) Ledger written to {ledger_filepath}!")

    if executor.success:
        click.secho(f"Deployed {len(executor.deployed)} contract(s).", fg="green")
        return

    for unit_name in executor.failed:
        click.secho(f"Failed: {unit_name}", fg="red")
    for unit_name in executor.skipped:
        click.secho(f"Not deployed: {unit_name}", fg="yellow")
    raise click.exceptions.Exit(1)


@cli.command(name="list-deployments")
@click.option(
    "--ledger",
    "-l",
    "ledger_filepath",
    help="Filepath of the deployment ledger",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)
@chain_option
def list_deployments(ledger_filepath, chains):
    """List the deployments recorded in a ledger, grouped by chain."""
    try:
        ledger = Ledger.read(ledger_filepath)
    except (LedgerError, ValueError) as e:
        raise click.ClickException(f"Cannot read ledger at {ledger_filepath}: {e}")

    records = [r for r in ledger.records() if not chains or r.chain in chains]
    for chain, chain_records in groupby(records, key=lambda r: r.chain):
        click.secho(f"\n{chain}", fg="yellow")
        for index, record in enumerate(chain_records, start=1):
            detail = record.address if record.address else (record.error or "")
            click.secho(
                f"    {index}. {record.unit_name} [{record.status.value}] {detail}",
                fg=STATUS_COLORS[record.status],
            )


if __name__ == "__main__":
    cli()
