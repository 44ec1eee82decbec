import pytest
import yaml

from bridge_deployment.constants import MANIFESTS_DIR
from bridge_deployment.errors import (
    CyclicDependency,
    DuplicateUnitName,
    ManifestError,
    UnknownReference,
)
from bridge_deployment.plan import DeploymentPlan, Reference, load_manifest, resolve
from tests.helpers import TOKEN_OWNER, WORMHOLE_RELAYER, unit


def names(units):
    return [u.name for u in units]


def test_bridge_after_token(bridge_units):
    ordered = resolve(list(reversed(bridge_units)))
    assert names(ordered) == ["Token", "Bridge"]
    assert ordered[1].depends_on == frozenset({"Token"})


def test_every_unit_after_its_dependencies():
    units = [
        unit("Bridge", "bsc", Reference("Token"), Reference("Relayer")),
        unit("Relayer", "bsc"),
        unit("Router", "eth", [Reference("Bridge"), Reference("Vault")]),
        unit("Token", "bsc", Reference("Relayer")),
        unit("Vault", "eth"),
    ]
    ordered = resolve(units)
    positions = {u.name: i for i, u in enumerate(ordered)}
    for u in ordered:
        for dependency in u.depends_on:
            assert positions[dependency] < positions[u.name]
    assert sorted(names(ordered)) == sorted(names(units))


def test_ties_break_by_declaration_order():
    units = [
        unit("C", "bsc"),
        unit("A", "eth"),
        unit("D", "bsc", Reference("B")),
        unit("B", "eth"),
    ]
    assert names(resolve(units)) == ["C", "A", "B", "D"]
    # same input, same order
    assert names(resolve(units)) == names(resolve(list(units)))


def test_chain_assignment_does_not_change_order():
    layout = [("A", ()), ("B", ("A",)), ("C", ()), ("D", ("C", "B"))]
    on_one_chain = [unit(n, "bsc", *[Reference(d) for d in deps]) for n, deps in layout]
    on_two_chains = [
        unit(n, "bsc" if i % 2 else "eth", *[Reference(d) for d in deps])
        for i, (n, deps) in enumerate(layout)
    ]
    assert names(resolve(on_one_chain)) == names(resolve(on_two_chains))


def test_duplicate_unit_name():
    with pytest.raises(DuplicateUnitName) as error:
        resolve([unit("Token", "bsc"), unit("Token", "eth")])
    assert error.value.name == "Token"


def test_unknown_reference():
    with pytest.raises(UnknownReference) as error:
        resolve([unit("Bridge", "bsc", Reference("Token"))])
    assert error.value.unit_name == "Bridge"
    assert error.value.reference == "Token"


def test_cycle_is_reported_with_its_members():
    units = [
        unit("Relayer", "bsc"),
        unit("Bridge", "bsc", Reference("Token")),
        unit("Token", "eth", Reference("Bridge")),
        unit("Router", "eth", Reference("Bridge")),
    ]
    with pytest.raises(CyclicDependency) as error:
        resolve(units)
    assert sorted(error.value.cycle) == ["Bridge", "Token"]
    assert "Bridge -> Token -> Bridge" in str(error.value)


def test_self_reference_is_a_cycle():
    with pytest.raises(CyclicDependency) as error:
        resolve([unit("Token", "bsc", Reference("Token"))])
    assert error.value.cycle == ["Token"]


def test_load_manifest(manifest_config):
    units = load_manifest(manifest_config)
    assert names(units) == ["BSCToken", "BSCBridge", "ETHToken", "ETHBridge"]

    bsc_token, bsc_bridge, eth_token, eth_bridge = units
    assert bsc_token.contract_type == "BSCToken"
    assert bsc_token.args == ("Wrapped JPGC", "WJPGC", TOKEN_OWNER)
    assert bsc_token.initializer == "initialize"
    assert bsc_token.depends_on == frozenset()

    assert bsc_bridge.contract_type == "BSCBridgeContract"
    assert bsc_bridge.args == (WORMHOLE_RELAYER, Reference("BSCToken"))

    assert eth_bridge.initializer == "initializeBridge"
    assert eth_bridge.depends_on == frozenset({"ETHToken", "BSCBridge"})
    assert eth_bridge.args[2] == (Reference("BSCBridge"), 4)


def test_manifest_unknown_constant(manifest_config):
    manifest_config["contracts"].append({"Vault": {"chain": "eth", "args": ["$TREASURY"]}})
    with pytest.raises(ManifestError, match="TREASURY"):
        load_manifest(manifest_config)


def test_name_of_both_constant_and_unit_is_rejected(manifest_config):
    manifest_config["constants"]["VAULT"] = TOKEN_OWNER
    manifest_config["contracts"].append({"VAULT": {"chain": "eth"}})
    manifest_config["contracts"].append({"Staking": {"chain": "eth", "args": ["$VAULT"]}})
    with pytest.raises(ManifestError, match="VAULT is ambiguous"):
        load_manifest(manifest_config)


def test_upper_case_unit_is_a_reference(manifest_config):
    manifest_config["contracts"].append({"VAULT": {"chain": "eth"}})
    manifest_config["contracts"].append({"Staking": {"chain": "eth", "args": ["$VAULT"]}})
    staking = load_manifest(manifest_config)[-1]
    assert staking.args == (Reference("VAULT"),)


def test_manifest_undeclared_chain(manifest_config):
    manifest_config["contracts"].append({"Vault": {"chain": "polygon"}})
    with pytest.raises(ManifestError, match="polygon"):
        load_manifest(manifest_config)


@pytest.mark.parametrize(
    "entry",
    [
        "Vault",
        {"Vault": {"chain": "eth"}, "Other": {"chain": "eth"}},
        {"Vault": ["eth"]},
        {"Vault": {"chain": "eth", "args": "$TOKEN_OWNER"}},
    ],
)
def test_malformed_manifest_entries(manifest_config, entry):
    manifest_config["contracts"].append(entry)
    with pytest.raises(ManifestError):
        load_manifest(manifest_config)


def test_plan_from_yaml(manifest_config, tmp_path):
    filepath = tmp_path / "manifest.yml"
    filepath.write_text(yaml.safe_dump(manifest_config, sort_keys=False))

    plan = DeploymentPlan.from_yaml(filepath)
    assert plan.name == "jpgc-bridge-test"
    assert plan.ledger_filepath == tmp_path / "artifacts" / "jpgc-bridge-test.json"
    assert names(plan.units) == ["BSCToken", "BSCBridge", "ETHToken", "ETHBridge"]
    assert names(plan.units_for_chain("eth")) == ["ETHToken", "ETHBridge"]
    assert plan.unit("BSCBridge").contract_type == "BSCBridgeContract"


@pytest.mark.parametrize("missing", ["deployment", "chains", "contracts", "artifacts"])
def test_plan_requires_top_level_sections(manifest_config, missing):
    del manifest_config[missing]
    with pytest.raises(ManifestError):
        DeploymentPlan(config=manifest_config)


@pytest.mark.parametrize(
    "section, value",
    [
        ("deployment", "jpgc-bridge-test"),
        ("deployment", ["jpgc-bridge-test"]),
        ("chains", ["bsc", "eth"]),
        ("contracts", {"BSCToken": {"chain": "bsc"}}),
        ("constants", ["TOKEN_OWNER"]),
        ("artifacts", "jpgc-bridge-test.json"),
    ],
)
def test_plan_rejects_malformed_top_level_sections(manifest_config, section, value):
    manifest_config[section] = value
    with pytest.raises(ManifestError):
        DeploymentPlan(config=manifest_config)


def test_cyclic_manifest_is_rejected(manifest_config):
    manifest_config["contracts"][0]["BSCToken"]["args"].append("$BSCBridge")
    with pytest.raises(CyclicDependency):
        DeploymentPlan(config=manifest_config)


def test_testnet_manifest():
    plan = DeploymentPlan.from_yaml(MANIFESTS_DIR / "jpgc-bridge-testnet.yml")
    assert names(plan.units) == [
        "BSCBridgeMintableToken",
        "BSCBridge",
        "TokenMintERC20Token",
        "ETHBridge",
    ]
    assert plan.chains == {"bsc": "bsc:testnet:node", "eth": "ethereum:sepolia:node"}
    eth_bridge = plan.unit("ETHBridge")
    assert eth_bridge.args[0] == Reference("TokenMintERC20Token")
    assert eth_bridge.args[3] == 4
