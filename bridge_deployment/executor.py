import asyncio
import inspect
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from bridge_deployment.errors import DeployFailure, UnresolvedReference
from bridge_deployment.ledger import DeploymentRecord, Ledger
from bridge_deployment.plan import DeploymentUnit, Reference

# deploy_fn(chain, contract_type, resolved_args, initializer=...) -> address
DeployFn = Callable[..., Union[str, Awaitable[str]]]


def _is_async(deploy_fn: DeployFn) -> bool:
    return inspect.iscoroutinefunction(deploy_fn) or inspect.iscoroutinefunction(
        getattr(deploy_fn, "__call__", None)
    )


class Executor:
    """
    Deploys resolved units through ``deploy_fn``, one asyncio task per chain.

    Units of a chain run strictly in the resolved order. A unit referencing a unit
    on another chain waits until that unit has settled. Units whose dependencies did
    not succeed are skipped and never reach ``deploy_fn``; units already succeeded in
    the ledger (a resumed run) are not deployed again.
    """

    def __init__(
        self,
        deploy_fn: DeployFn,
        ledger: Optional[Ledger] = None,
        max_parallel: Optional[int] = None,
    ):
        self.deploy_fn = deploy_fn
        self.ledger = ledger if ledger is not None else Ledger()
        self.max_parallel = max_parallel

        self.deployed: List[str] = list()
        self.reused: List[str] = list()
        self.failed: List[str] = list()
        self.skipped: List[str] = list()

        self._units: Dict[str, DeploymentUnit] = dict()
        self._settled: Dict[str, asyncio.Event] = dict()
        self._slots: Optional[asyncio.Semaphore] = None

    @property
    def success(self) -> bool:
        return not self.failed and not self.skipped

    async def run(self, units: Sequence[DeploymentUnit]) -> Ledger:
        self._units = OrderedDict((unit.name, unit) for unit in units)
        self._settled = {unit.name: asyncio.Event() for unit in units}
        self._slots = asyncio.Semaphore(self.max_parallel) if self.max_parallel else None

        streams = OrderedDict()
        for unit in units:
            streams.setdefault(unit.chain, list()).append(unit)

        await asyncio.gather(*(self._run_chain(stream) for stream in streams.values()))
        return self.ledger

    async def _run_chain(self, units: List[DeploymentUnit]) -> None:
        for unit in units:
            try:
                await self._run_unit(unit)
            finally:
                self._settled[unit.name].set()

    async def _run_unit(self, unit: DeploymentUnit) -> None:
        if self.ledger.succeeded(unit.chain, unit.name):
            address = self.ledger.lookup(unit.chain, unit.name)
            print(f"(i) {unit.name} already deployed on {unit.chain} at {address}; skipping.")
            self.reused.append(unit.name)
            return

        for dependency in sorted(unit.depends_on):
            if dependency not in self._settled:
                raise UnresolvedReference(unit_name=unit.name, reference=dependency)
            await self._settled[dependency].wait()

        # re-checked here: a dependency may have failed after the plan was resolved
        blocked = [
            dependency
            for dependency in sorted(unit.depends_on)
            if not self.ledger.succeeded(self._units[dependency].chain, dependency)
        ]
        if blocked:
            print(f"! Not deploying {unit.name}: {', '.join(blocked)} did not deploy.")
            self.skipped.append(unit.name)
            return

        resolved_args = self._resolve_args(unit)
        pending = DeploymentRecord.pending(
            unit_name=unit.name, chain=unit.chain, contract_type=unit.contract_type
        )
        self.ledger.record(pending)

        print(f"Deploying {unit.name} ({unit.contract_type}) on {unit.chain}...")
        try:
            address = await self._deploy(unit, resolved_args)
            if not address:
                raise ValueError(f"no address returned for {unit.contract_type}")
        except Exception as e:
            failure = DeployFailure(unit_name=unit.name, cause=e)
            print(f"! {failure}")
            self.ledger.record(pending.failed(error=str(e) or type(e).__name__))
            self.failed.append(unit.name)
            return

        self.ledger.record(pending.succeeded(address=address))
        self.deployed.append(unit.name)
        print(f"'{unit.name}' deployed to: {address}")

    def _resolve_arg(self, unit: DeploymentUnit, value: Any) -> Any:
        if isinstance(value, Reference):
            dependency = self._units.get(value.name)
            address = dependency and self.ledger.lookup(dependency.chain, dependency.name)
            if not address:
                raise UnresolvedReference(unit_name=unit.name, reference=value.name)
            return address

        if isinstance(value, (list, tuple)):
            return [self._resolve_arg(unit, v) for v in value]

        return value  # literally a value

    def _resolve_args(self, unit: DeploymentUnit) -> List[Any]:
        return [self._resolve_arg(unit, value) for value in unit.args]

    async def _deploy(self, unit: DeploymentUnit, resolved_args: List[Any]) -> str:
        if self._slots is None:
            return await self._call(unit, resolved_args)
        async with self._slots:
            return await self._call(unit, resolved_args)

    async def _call(self, unit: DeploymentUnit, resolved_args: List[Any]) -> str:
        args = (unit.chain, unit.contract_type, resolved_args)
        kwargs = {"initializer": unit.initializer}
        if _is_async(self.deploy_fn):
            return await self.deploy_fn(*args, **kwargs)
        return await asyncio.to_thread(self.deploy_fn, *args, **kwargs)


async def execute(
    units: Sequence[DeploymentUnit],
    deploy_fn: DeployFn,
    ledger: Optional[Ledger] = None,
    max_parallel: Optional[int] = None,
) -> Ledger:
    """Deploys resolved units, resuming from ``ledger`` when one is given."""
    executor = Executor(deploy_fn=deploy_fn, ledger=ledger, max_parallel=max_parallel)
    return await executor.run(units)
