import os
import threading
import typing
from typing import Any, Dict, List, Optional, Sequence

from ape import accounts, networks, project
from ape.api import AccountAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance
from ape.utils import ZERO_ADDRESS
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from ethpm_types import MethodABI
from web3.auto import w3

from bridge_deployment.confirm import _confirm_resolution
from bridge_deployment.constants import (
    DEFAULT_INITIALIZER,
    OZ_DEPENDENCY_NAME,
    OZ_DEPENDENCY_VERSION,
    PROXY_CONTRACT_NAME,
)
from bridge_deployment.networks import get_network_choice, is_local_network, use_network
from bridge_deployment.plan import DeploymentUnit, Reference


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def get_proxy_container() -> ContractContainer:
    oz_dependency = project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
    return getattr(oz_dependency, PROXY_CONTRACT_NAME)


def _placeholder_arg(value: Any) -> Any:
    # references are not deployed yet during eager validation
    if isinstance(value, Reference):
        return ZERO_ADDRESS
    if isinstance(value, (list, tuple)):
        return [_placeholder_arg(v) for v in value]
    return value


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the initializer arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _explorer_api_key_envvar(ecosystem_name: str) -> Optional[str]:
    try:
        from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to verify contracts.")
    return API_KEY_ENV_KEY_MAP.get(ecosystem_name)


def check_etherscan_plugin(network_choice: str) -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the appropriate API key environment variable is set.
    """
    if is_local_network(network_choice):
        # unnecessary for local deployment
        return
    ecosystem_name = network_choice.split(":")[0]
    explorer_envvar = _explorer_api_key_envvar(ecosystem_name)
    if not explorer_envvar or not os.environ.get(explorer_envvar):
        raise ValueError(f"{explorer_envvar or 'Explorer API key'} is not set.")


class ApeProxyDeployer:
    """
    Deploys a contract behind an OpenZeppelin TransparentUpgradeableProxy
    and calls its initializer, on the ape network configured for each chain.

    Instances are callables suitable as an executor ``deploy_fn``. The active ape
    provider is process-global, so calls are serialized.
    """

    def __init__(
        self,
        chains: Dict[str, str],
        account: Optional[AccountAPI] = None,
        autosign: bool = False,
        verify: bool = False,
        proxy_owner: Optional[ChecksumAddress] = None,
    ):
        self.chains = chains
        self.verify = verify
        self._lock = threading.Lock()

        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)

        self.proxy_owner = proxy_owner or self._account.address
        if verify:
            for network_choice in chains.values():
                check_etherscan_plugin(network_choice)

    @classmethod
    def from_alias(
        cls, chains: Dict[str, str], alias: Optional[str], **kwargs
    ) -> "ApeProxyDeployer":
        account = accounts.load(alias) if alias else None
        return cls(chains=chains, account=account, **kwargs)

    def get_account(self) -> AccountAPI:
        """Returns the deployer account."""
        return self._account

    def validate(self, units: Sequence[DeploymentUnit]) -> None:
        """Checks every unit's initializer arguments against its contract ABI."""
        print("Validating initializer arguments...")
        for unit in units:
            get_network_choice(self.chains, unit.chain)
            container = get_contract_container(unit.contract_type)
            method_abis = [
                abi for abi in container.contract_type.methods if abi.name == unit.initializer
            ]
            if not method_abis:
                raise ValueError(
                    f"{unit.contract_type} of {unit.name} has no '{unit.initializer}' method."
                )
            _validate_method_args(method_abis, [_placeholder_arg(arg) for arg in unit.args])

    def __call__(
        self,
        chain: str,
        contract_type: str,
        resolved_args: List[Any],
        initializer: str = DEFAULT_INITIALIZER,
    ) -> ChecksumAddress:
        network_choice = get_network_choice(self.chains, chain)
        with self._lock, use_network(network_choice):
            container = get_contract_container(contract_type)
            if not self._autosign:
                _confirm_resolution(resolved_args, contract_type, chain, initializer)
            instance = self._deploy_proxy(container, resolved_args, initializer)
        return to_checksum_address(instance.address)

    def _deploy_proxy(
        self, container: ContractContainer, resolved_args: List[Any], initializer: str
    ) -> ContractInstance:
        contract_name = container.contract_type.name
        implementation = self._account.deploy(container, publish=self.verify)
        data = getattr(implementation, initializer).encode_input(*resolved_args)

        proxy_container = get_proxy_container()
        print(
            f"\nDeploying {proxy_container.contract_type.name} "
            f"contract to proxy {contract_name} on {networks.provider.network.name}."
        )
        proxy_contract = self._account.deploy(
            proxy_container,
            implementation.address,
            self.proxy_owner,
            data,
            publish=self.verify,
        )
        print(
            f"\nWrapping {contract_name} into {proxy_contract.contract_type.name} "
            f"at {proxy_contract.address}."
        )
        return container.at(proxy_contract.address)
