import heapq
import typing
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterator, List, NamedTuple, Sequence

from bridge_deployment.constants import (
    DEFAULT_INITIALIZER,
    MANIFEST_CHAINS_KEY,
    MANIFEST_CONSTANTS_KEY,
    MANIFEST_CONTRACTS_KEY,
    MANIFEST_DEPLOYMENT_KEY,
    UNIT_ARGS_KEY,
    UNIT_CHAIN_KEY,
    UNIT_CONTRACT_TYPE_KEY,
    UNIT_INITIALIZER_KEY,
    VARIABLE_PREFIX,
)
from bridge_deployment.errors import (
    CyclicDependency,
    DuplicateUnitName,
    ManifestError,
    UnknownReference,
)
from bridge_deployment.utils import _load_yaml, validate_config


class Reference(NamedTuple):
    """Placeholder for the deployed address of another deployment unit."""

    name: str

    def __str__(self) -> str:
        return f"{VARIABLE_PREFIX}{self.name}"


class DeploymentUnit(NamedTuple):
    """A single proxied contract to deploy and initialize on one chain."""

    name: str
    chain: str
    contract_type: str
    args: tuple = ()
    initializer: str = DEFAULT_INITIALIZER

    @property
    def depends_on(self) -> FrozenSet[str]:
        return frozenset(reference.name for reference in iter_references(self.args))


def iter_references(value: Any) -> Iterator[Reference]:
    """Yields every reference found in a (possibly nested) argument value."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


def _format_arg(value: Any) -> str:
    if isinstance(value, tuple) and not isinstance(value, Reference):
        return "[" + ", ".join(_format_arg(v) for v in value) + "]"
    return str(value)


#
# Manifest processing
#


class VariableContext:
    def __init__(self, unit_names: List[str], unit_name: str, constants: Dict[str, Any] = None):
        self.unit_names = unit_names or list()
        self.unit_name = unit_name
        self.constants = constants or dict()


def is_variable(value: Any) -> bool:
    """Returns True if the manifest value is a variable."""
    return isinstance(value, str) and value.startswith(VARIABLE_PREFIX)


def _variable_from_value(value: str, context: VariableContext) -> Any:
    variable = value[len(VARIABLE_PREFIX) :]
    if variable in context.constants:
        return context.constants[variable]
    if variable.isupper() and variable not in context.unit_names:
        raise ManifestError(
            f"Constant '{variable}' used by '{context.unit_name}' not found in manifest."
        )
    # unknown unit names are reported by resolve()
    return Reference(variable)


def _process_raw_value(value: Any, context: VariableContext) -> Any:
    if isinstance(value, list):
        return tuple(_process_raw_value(v, context) for v in value)

    if is_variable(value):
        return _variable_from_value(value, context)

    return value


def _get_unit_names(config: typing.Dict) -> List[str]:
    unit_names = list()
    for unit_info in config[MANIFEST_CONTRACTS_KEY]:
        if isinstance(unit_info, str):
            unit_names.append(unit_info)
        elif isinstance(unit_info, dict) and len(unit_info) == 1:
            unit_names.extend(list(unit_info.keys()))
        else:
            raise ManifestError("Malformed contracts section in manifest.")

    return unit_names


def _unit_from_info(unit_name: str, unit_data: Dict, context: VariableContext) -> DeploymentUnit:
    if not isinstance(unit_data, dict):
        raise ManifestError(f"Malformed manifest entry for {unit_name}.")

    chain = unit_data.get(UNIT_CHAIN_KEY)
    if not chain:
        raise ManifestError(f"No chain specified for {unit_name}.")

    raw_args = unit_data.get(UNIT_ARGS_KEY) or []
    if not isinstance(raw_args, list):
        raise ManifestError(f"Arguments of {unit_name} must be a list.")

    return DeploymentUnit(
        name=unit_name,
        chain=str(chain),
        contract_type=unit_data.get(UNIT_CONTRACT_TYPE_KEY, unit_name),
        args=_process_raw_value(raw_args, context),
        initializer=unit_data.get(UNIT_INITIALIZER_KEY, DEFAULT_INITIALIZER),
    )


def load_manifest(config: typing.Dict) -> List[DeploymentUnit]:
    """
    Builds deployment units, in declaration order, from a parsed manifest.

    Each entry of ``contracts`` is a single-key mapping from unit name to its
    ``chain``, optional ``contract_type`` and ``initializer``, and ``args``.
    ``$NAME`` arguments are substituted with manifest constants; any other
    ``$Name`` becomes a reference to the deployed address of unit ``Name``.
    A name may not be both a constant and a unit.
    """
    unit_names = _get_unit_names(config)
    constants = config.get(MANIFEST_CONSTANTS_KEY) or dict()
    chains = config.get(MANIFEST_CHAINS_KEY) or dict()
    ambiguous = [name for name in unit_names if name in constants]
    if ambiguous:
        raise ManifestError(
            f"{VARIABLE_PREFIX}{ambiguous[0]} is ambiguous: "
            "it names both a constant and a deployment unit."
        )

    units = list()
    for unit_info in config[MANIFEST_CONTRACTS_KEY]:
        if isinstance(unit_info, str):
            raise ManifestError(f"No chain specified for {unit_info}.")

        unit_name = list(unit_info.keys())[0]  # only one entry
        context = VariableContext(unit_names=unit_names, unit_name=unit_name, constants=constants)
        unit = _unit_from_info(unit_name, unit_info[unit_name], context)
        if unit.chain not in chains:
            raise ManifestError(
                f"Chain '{unit.chain}' of {unit_name} is not declared in manifest."
            )
        units.append(unit)

    return units


#
# Resolution
#


def _find_cycle(remaining: Dict[str, DeploymentUnit], positions: Dict[str, int]) -> List[str]:
    # every unit left over by the topological sort still waits on another left-over unit
    walk = OrderedDict()
    current = min(remaining, key=positions.__getitem__)
    while current not in walk:
        walk[current] = None
        pending = [name for name in remaining[current].depends_on if name in remaining]
        current = min(pending, key=positions.__getitem__)

    path = list(walk)
    return path[path.index(current) :]


def resolve(units: Sequence[DeploymentUnit]) -> List[DeploymentUnit]:
    """
    Orders deployment units so that every unit comes after the units it references.
    Ties are broken by declaration order, so the same manifest always yields the same order.
    """
    positions = dict()
    for position, unit in enumerate(units):
        if unit.name in positions:
            raise DuplicateUnitName(unit.name)
        positions[unit.name] = position

    by_name = {unit.name: unit for unit in units}
    dependents = {unit.name: list() for unit in units}
    waiting_on = dict()
    for unit in units:
        for reference in iter_references(unit.args):
            if reference.name not in by_name:
                raise UnknownReference(unit_name=unit.name, reference=reference.name)
        for dependency in unit.depends_on:
            dependents[dependency].append(unit.name)
        waiting_on[unit.name] = len(unit.depends_on)

    ready = [(positions[name], name) for name, count in waiting_on.items() if count == 0]
    heapq.heapify(ready)

    ordered = list()
    while ready:
        _, name = heapq.heappop(ready)
        ordered.append(by_name[name])
        for dependent in dependents[name]:
            waiting_on[dependent] -= 1
            if waiting_on[dependent] == 0:
                heapq.heappush(ready, (positions[dependent], dependent))

    if len(ordered) != len(units):
        resolved = {unit.name for unit in ordered}
        remaining = {name: unit for name, unit in by_name.items() if name not in resolved}
        raise CyclicDependency(_find_cycle(remaining, positions))

    return ordered


class DeploymentPlan:
    """A resolved, ordered set of deployment units loaded from a manifest."""

    def __init__(self, config: typing.Dict, path: Path = None):
        self.path = path
        self.config = config
        self.ledger_filepath = validate_config(config=config)
        self.name = config[MANIFEST_DEPLOYMENT_KEY]["name"]
        self.chains = dict(config[MANIFEST_CHAINS_KEY])

        print("Resolving deployment order...")
        self.units = resolve(load_manifest(config))

    @classmethod
    def from_yaml(cls, filepath: Path) -> "DeploymentPlan":
        config = _load_yaml(filepath)
        return cls(config=config, path=filepath)

    def unit(self, name: str) -> DeploymentUnit:
        for unit in self.units:
            if unit.name == name:
                return unit
        raise KeyError(name)

    def units_for_chain(self, chain: str) -> List[DeploymentUnit]:
        return [unit for unit in self.units if unit.chain == chain]

    def print_summary(self) -> None:
        print(f"Deployment: {self.name}", f"Manifest: {self.path}", sep="\n")
        for position, unit in enumerate(self.units, start=1):
            args = ", ".join(_format_arg(arg) for arg in unit.args)
            print(f"\t{position}. [{unit.chain}] {unit.name} ({unit.contract_type}) <- {args}")
