from typing import ContextManager, Dict

from ape import networks
from ape.api import ProviderAPI

from bridge_deployment.errors import ManifestError

LOCAL_NETWORK_NAME = "local"
NETWORK_CHOICE_DELIMITER = ":"


def is_local_network(network_choice: str) -> bool:
    """Returns True if an ape network choice (ecosystem:network:provider) is a local network."""
    parts = network_choice.split(NETWORK_CHOICE_DELIMITER)
    return len(parts) > 1 and parts[1] == LOCAL_NETWORK_NAME


def get_network_choice(chains: Dict[str, str], chain: str) -> str:
    """Returns the ape network choice configured for a manifest chain."""
    try:
        return chains[chain]
    except KeyError:
        raise ManifestError(f"No network configured for chain '{chain}'.")


def use_network(network_choice: str) -> ContextManager[ProviderAPI]:
    """Connects to the given network for the duration of the context."""
    return networks.parse_network_choice(network_choice)
