import asyncio
from typing import Any, List

from bridge_deployment.plan import DeploymentUnit

TOKEN_OWNER = "0x963194A12420bC8cfc4F2CdBd5E550FaE137fd48"
WORMHOLE_RELAYER = "0x80aC94316391752A193C1c47E27D382b507c93F3"


def address(index: int) -> str:
    return "0x" + f"{index:040x}"


class FakeDeployer:
    """Stands in for the on-chain proxy deployer; records every call it receives."""

    def __init__(self, failing=(), addresses=None):
        self.failing = set(failing)
        self.addresses = addresses or dict()
        self.calls: List[tuple] = list()
        self.validated: List[DeploymentUnit] = list()

    async def __call__(self, chain, contract_type, resolved_args, initializer="initialize") -> str:
        self.calls.append((chain, contract_type, list(resolved_args), initializer))
        await asyncio.sleep(0)
        if contract_type in self.failing:
            raise RuntimeError(f"{contract_type} initializer reverted")
        return self.addresses.get(contract_type) or address(len(self.calls))

    def validate(self, units) -> None:
        self.validated = list(units)

    @property
    def deployed(self) -> List[str]:
        return [call[1] for call in self.calls]

    def args_of(self, contract_type: str) -> List[Any]:
        for call in self.calls:
            if call[1] == contract_type:
                return call[2]
        raise KeyError(contract_type)


class FakeAccount:
    """Deploying account that records deployments instead of signing them."""

    address = TOKEN_OWNER

    def __init__(self):
        self.autosign = None
        self.deployments: List[tuple] = list()

    def set_autosign(self, enabled: bool) -> None:
        self.autosign = enabled

    def deploy(self, container, *args, publish=False):
        self.deployments.append((container, args, publish))
        return container.at(address(len(self.deployments)))


def unit(name, chain="bsc", *args, **kwargs) -> DeploymentUnit:
    return DeploymentUnit(name=name, chain=chain, contract_type=name, args=tuple(args), **kwargs)
