from pathlib import Path

import bridge_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(bridge_deployment.__file__).parent
MANIFESTS_DIR = DEPLOYMENT_DIR / "manifests"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

#
# Manifest
#

VARIABLE_PREFIX = "$"
DEFAULT_INITIALIZER = "initialize"

MANIFEST_DEPLOYMENT_KEY = "deployment"
MANIFEST_CHAINS_KEY = "chains"
MANIFEST_CONSTANTS_KEY = "constants"
MANIFEST_CONTRACTS_KEY = "contracts"
MANIFEST_ARTIFACTS_KEY = "artifacts"

UNIT_CHAIN_KEY = "chain"
UNIT_CONTRACT_TYPE_KEY = "contract_type"
UNIT_INITIALIZER_KEY = "initializer"
UNIT_ARGS_KEY = "args"

#
# Ledger
#

STANDARD_LEDGER_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}

#
# Contracts
#

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"
PROXY_CONTRACT_NAME = "TransparentUpgradeableProxy"
