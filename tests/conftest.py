import pytest

from bridge_deployment.plan import Reference
from tests.helpers import TOKEN_OWNER, WORMHOLE_RELAYER, FakeDeployer, unit


@pytest.fixture
def deployer():
    return FakeDeployer()


@pytest.fixture
def bridge_units():
    return [
        unit("Token", "bsc", "Wrapped JPGC", "WJPGC", TOKEN_OWNER),
        unit("Bridge", "bsc", WORMHOLE_RELAYER, Reference("Token")),
    ]


@pytest.fixture
def manifest_config(tmp_path):
    return {
        "deployment": {"name": "jpgc-bridge-test"},
        "artifacts": {"dir": str(tmp_path / "artifacts"), "filename": "jpgc-bridge-test.json"},
        "chains": {"bsc": "bsc:local:test", "eth": "ethereum:local:test"},
        "constants": {"TOKEN_OWNER": TOKEN_OWNER, "WORMHOLE_RELAYER": WORMHOLE_RELAYER},
        "contracts": [
            {"BSCToken": {"chain": "bsc", "args": ["Wrapped JPGC", "WJPGC", "$TOKEN_OWNER"]}},
            {
                "BSCBridge": {
                    "chain": "bsc",
                    "contract_type": "BSCBridgeContract",
                    "args": ["$WORMHOLE_RELAYER", "$BSCToken"],
                }
            },
            {"ETHToken": {"chain": "eth", "args": ["JPGC", "JPGC", 0, "$TOKEN_OWNER"]}},
            {
                "ETHBridge": {
                    "chain": "eth",
                    "contract_type": "ETHBridgeContract",
                    "initializer": "initializeBridge",
                    "args": ["$ETHToken", "$WORMHOLE_RELAYER", ["$BSCBridge", 4]],
                }
            },
        ],
    }
