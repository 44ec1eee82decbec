from typing import Any, List

from ape.utils import ZERO_ADDRESS


def _abort() -> None:
    print("Aborting deployment!")
    exit(-1)


def _confirm_deployment(contract_name: str, chain: str) -> None:
    """Asks the user to confirm the deployment of a single unit."""
    answer = input(f"Deploy {contract_name} on {chain} Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _confirm_zero_address() -> None:
    answer = input("Zero Address detected for initializer argument; Continue? Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _contains_zero_address(value: Any) -> bool:
    if isinstance(value, list):
        return any(_contains_zero_address(v) for v in value)
    return isinstance(value, str) and value.lower() == ZERO_ADDRESS.lower()


def _confirm_resolution(
    resolved_args: List[Any], contract_name: str, chain: str, initializer: str
) -> None:
    """Asks the user to confirm the resolved initializer arguments for a single unit."""
    if len(resolved_args) == 0:
        print(f"\n(i) No initializer arguments for {contract_name}")
        _confirm_deployment(contract_name, chain)
        return

    print(f"\nArguments of {contract_name}.{initializer}")
    for position, resolved_value in enumerate(resolved_args):
        print(f"\t[{position}] {resolved_value}")
    _confirm_deployment(contract_name, chain)
    if _contains_zero_address(resolved_args):
        _confirm_zero_address()
