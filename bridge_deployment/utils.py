import json
from pathlib import Path
from typing import Dict

import yaml

from bridge_deployment.constants import (
    ARTIFACTS_DIR,
    MANIFEST_ARTIFACTS_KEY,
    MANIFEST_CHAINS_KEY,
    MANIFEST_CONSTANTS_KEY,
    MANIFEST_CONTRACTS_KEY,
    MANIFEST_DEPLOYMENT_KEY,
)
from bridge_deployment.errors import ManifestError


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the ledger artifact file."""
    artifact_config = config.get(MANIFEST_ARTIFACTS_KEY) or {}
    if not isinstance(artifact_config, dict):
        raise ManifestError("artifacts section of manifest must be a mapping.")
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ManifestError("artifact filename is not set in manifest.")
    return artifact_dir / filename


def validate_config(config: Dict) -> Path:
    """
    Checks the top-level structure of a manifest and
    returns the filepath of its ledger artifact.
    """
    print("Validating manifest YAML...")
    if not isinstance(config, dict):
        raise ManifestError("Manifest must be a YAML mapping.")

    deployment = config.get(MANIFEST_DEPLOYMENT_KEY)
    if not isinstance(deployment, dict) or not deployment.get("name"):
        raise ManifestError("deployment name is not set in manifest.")

    chains = config.get(MANIFEST_CHAINS_KEY)
    if not chains or not isinstance(chains, dict):
        raise ManifestError("Manifest missing 'chains' mapping.")

    contracts = config.get(MANIFEST_CONTRACTS_KEY)
    if not contracts or not isinstance(contracts, list):
        raise ManifestError("Manifest missing 'contracts' field.")

    constants = config.get(MANIFEST_CONSTANTS_KEY)
    if constants is not None and not isinstance(constants, dict):
        raise ManifestError("constants section of manifest must be a mapping.")

    return get_artifact_filepath(config=config)
