import pytest

from simulator import MERC20Simulator


def test_initial_ledger_is_deterministic(client, helper_module):
    mint = helper_module.random_address()
    first = MERC20Simulator(client, helper_module, 1000, mint, "TestToken", "TTK", 18,
                            contract_name="con_merc20_first")
    second = MERC20Simulator(client, helper_module, 1000, mint, "TestToken", "TTK", 18,
                             contract_name="con_merc20_second")

    first_ledger = first.get_ledger()
    second_ledger = second.get_ledger()
    for field in ("name", "symbol", "decimals", "total_supply"):
        assert first_ledger[field] == second_ledger[field]
    assert first_ledger["balances"][mint] == second_ledger["balances"][mint] == 1000
    assert first_ledger["allowances"] == second_ledger["allowances"] == {}


def test_initial_ledger_state(simulator, helper_module, deployer):
    ledger = simulator.get_ledger()

    assert ledger["name"] == "TestToken"
    assert ledger["symbol"] == "TTK"
    assert ledger["decimals"] == 18
    assert ledger["total_supply"] == 1000
    assert ledger["balances"][deployer] == 1000
    assert ledger["allowances"] == {}
    assert simulator.balance_of(helper_module.random_address()) == 0


def test_transfer_scenario(simulator, helper_module, deployer):
    recipient = helper_module.compute_address(helper_module.random_secret_key())

    ledger = simulator.transfer(recipient, 300)

    assert ledger["balances"][deployer] == 700
    assert ledger["balances"][recipient] == 300
    assert ledger["total_supply"] == 1000


def test_approve_then_transfer_from_scenario(simulator, helper_module, deployer):
    spender_sk = helper_module.random_secret_key()
    spender = helper_module.compute_address(spender_sk)
    recipient = helper_module.random_address()

    simulator.approve(spender, 400)
    assert simulator.allowance(deployer, spender) == 400

    simulator.set_secret_key(spender_sk)
    ledger = simulator.transfer_from(deployer, recipient, 250)

    assert ledger["balances"][deployer] == 750
    assert ledger["balances"][recipient] == 250
    assert ledger["allowances"] == {deployer: {spender: 150}}


@pytest.mark.parametrize("operation", ["overdraft", "no_allowance", "allowance_overdraft"])
def test_failed_operation_leaves_ledger_unchanged(simulator, helper_module, deployer, operation):
    spender_sk = helper_module.random_secret_key()
    spender = helper_module.compute_address(spender_sk)
    recipient = helper_module.random_address()
    simulator.transfer(recipient, 100)
    simulator.approve(spender, 50)
    before = simulator.get_ledger()

    with pytest.raises(AssertionError):
        if operation == "overdraft":
            simulator.transfer(recipient, 901)
        elif operation == "no_allowance":
            simulator.set_secret_key(helper_module.random_secret_key())
            simulator.transfer_from(deployer, recipient, 1)
        else:
            simulator.set_secret_key(spender_sk)
            simulator.transfer_from(deployer, recipient, 51)

    after = simulator.get_ledger()
    for field in ("name", "symbol", "decimals", "total_supply"):
        assert after[field] == before[field]
    for address, balance in before["balances"].items():
        assert after["balances"][address] == balance
    assert after["allowances"] == before["allowances"]
