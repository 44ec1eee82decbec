from pathlib import Path

import click
from ape.utils import ZERO_ADDRESS
from eth_utils import is_address, is_same_address, to_checksum_address


class DeploymentLimit(click.ParamType):
    """Number of deployments allowed in flight at once; at least one."""

    name = "limit"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return self._check(value, param, ctx)
        try:
            limit = int(value)
        except ValueError:
            self.fail(f"{value!r} is not a number of deployments", param, ctx)
        return self._check(limit, param, ctx)

    def _check(self, limit, param, ctx):
        if limit < 1:
            self.fail(f"at least one deployment must be allowed at a time, got {limit}", param, ctx)
        return limit


class ProxyOwnerAddress(click.ParamType):
    name = "address"

    def convert(self, value, param, ctx):
        if not is_address(value):
            self.fail(f"{value!r} is not an address that can own the proxies", param, ctx)
        if is_same_address(value, ZERO_ADDRESS):
            self.fail("proxies owned by the zero address could never be upgraded", param, ctx)
        return to_checksum_address(value)


manifest_option = click.option(
    "--manifest",
    "-m",
    help="Filepath of the deployment manifest YAML",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)

resume_option = click.option(
    "--resume",
    "-r",
    help="Resume from an existing ledger, skipping units that are already deployed.",
    is_flag=True,
    default=False,
)

ledger_option = click.option(
    "--ledger",
    "-l",
    "ledger_filepath",
    help="Filepath of the deployment ledger; defaults to the manifest's artifact file",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions and skip confirmations automatically.",
    is_flag=True,
    default=False,
)

verify_option = click.option(
    "--verify",
    help="Publish deployed contracts to the block explorer.",
    is_flag=True,
    default=False,
)

account_option = click.option(
    "--account",
    "-a",
    help="Alias of the ape account used to deploy; prompts when omitted.",
    type=click.STRING,
    required=False,
)

proxy_owner_option = click.option(
    "--proxy-owner",
    help="Initial owner of the deployed proxies; defaults to the deploying account.",
    type=ProxyOwnerAddress(),
    required=False,
)

max_parallel_option = click.option(
    "--max-parallel",
    "-p",
    help="Maximum number of deployments in flight across chains.",
    type=DeploymentLimit(),
    required=False,
)

chain_option = click.option(
    "--chain",
    "-c",
    "chains",
    help="Only list deployments on these chains.",
    multiple=True,
    required=False,
)
