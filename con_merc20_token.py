"""
MERC-20 TOKEN LEDGER

Fungible token with balances and two-level allowances.
Callers never sign as themselves: every mutating call reveals a secret key
and the effective caller is the address committed to by that key:
  - address = sha3(ADDRESS_TAG | secret_key)

Amounts are unsigned 222-bit integers. Any call that would push a stored
value outside [0, 2**222 - 1] is rejected before the first write.
"""

# -----------------------------------------------------------------------------
# Parameters & Helpers
# -----------------------------------------------------------------------------

MAX_UINT222 = 2**222 - 1
MAX_UINT8 = 2**8 - 1

ADDRESS_TAG = "MERC20:address:v1"
HEX_DIGITS = "0123456789abcdef"

def address_of(secret_key: str):
    # Tag is not hex, so the runtime hashes the utf-8 text as-is
    return hashlib.sha3(ADDRESS_TAG + "|" + secret_key)

def assert_bytes32(value: str, label: str):
    assert isinstance(value, str) and len(value) == 64, \
        f'InvalidArgument: {label} must be 32 bytes of lowercase hex'
    for c in value:
        assert c in HEX_DIGITS, f'InvalidArgument: {label} must be 32 bytes of lowercase hex'

def assert_uint222(value: int, label: str):
    assert isinstance(value, int) and not isinstance(value, bool), \
        f'InvalidArgument: {label} must be an integer'
    assert 0 <= value <= MAX_UINT222, f'InvalidArgument: {label} {value} is outside the uint222 range'

def checked_add(a: int, b: int):
    assert a + b <= MAX_UINT222, f'ArithmeticOverflow: {a} + {b} exceeds the uint222 range'
    return a + b

# -----------------------------------------------------------------------------
# State
# -----------------------------------------------------------------------------

# address -> int
balances = Hash(default_value=0)

# (owner, spender) -> int, absent until the owner approves the spender
allowances = Hash()

# name / symbol / decimals, sealed at construction
metadata = Hash()

total_supply = Variable()

# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------

@construct
def seed(initial_supply: int, mint_address: str, name: str, symbol: str, decimals: int):
    assert_uint222(initial_supply, 'initial_supply')
    assert_bytes32(mint_address, 'mint_address')
    assert isinstance(name, str), 'InvalidArgument: name must be a string'
    assert isinstance(symbol, str), 'InvalidArgument: symbol must be a string'
    assert isinstance(decimals, int) and not isinstance(decimals, bool) and 0 <= decimals <= MAX_UINT8, \
        f'InvalidArgument: decimals {decimals} is outside the uint8 range'

    metadata['name'] = name
    metadata['symbol'] = symbol
    metadata['decimals'] = decimals

    total_supply.set(initial_supply)
    balances[mint_address] = initial_supply

# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------

def token_metadata():
    return {
        'name': metadata['name'],
        'symbol': metadata['symbol'],
        'decimals': metadata['decimals'],
        'total_supply': total_supply.get()
    }

@export
def get_metadata():
    return token_metadata()

@export
def get_total_supply():
    return total_supply.get()

@export
def balance_of(owner: str):
    return balances[owner]

@export
def allowance(owner: str, spender: str):
    current = allowances[owner, spender]
    return current if current is not None else 0

@export
def has_allowance(owner: str, spender: str):
    return allowances[owner, spender] is not None

@export
def compute_address(secret_key: str):
    assert_bytes32(secret_key, 'secret_key')
    return address_of(secret_key)

# -----------------------------------------------------------------------------
# Core: transfers and approvals
# -----------------------------------------------------------------------------

def move(sender: str, to: str, amount: int):
    # Preconditions on the sender are checked by the caller
    if amount == 0 or sender == to:
        return

    sender_balance = balances[sender]
    receiver_balance = balances[to]
    new_receiver_balance = checked_add(receiver_balance, amount)

    balances[sender] = sender_balance - amount
    balances[to] = new_receiver_balance

def receipt(sender: str, to: str, amount: int):
    return {
        'from': sender,
        'to': to,
        'amount': amount,
        'from_balance': balances[sender],
        'to_balance': balances[to],
        'metadata': token_metadata()
    }

@export
def transfer(secret_key: str, to: str, amount: int):
    assert_bytes32(secret_key, 'secret_key')
    assert_bytes32(to, 'to')
    assert_uint222(amount, 'amount')

    sender = address_of(secret_key)

    sender_balance = balances[sender]
    assert sender_balance >= amount, \
        f'InsufficientBalance: {sender} holds {sender_balance}, needs {amount}'

    move(sender, to, amount)

    return receipt(sender, to, amount)

@export
def approve(secret_key: str, spender: str, amount: int):
    assert_bytes32(secret_key, 'secret_key')
    assert_bytes32(spender, 'spender')
    assert_uint222(amount, 'amount')

    owner = address_of(secret_key)

    # Absolute set, never additive
    allowances[owner, spender] = amount

    return {
        'owner': owner,
        'spender': spender,
        'allowance': amount,
        'metadata': token_metadata()
    }

@export
def transfer_from(secret_key: str, from_address: str, to: str, amount: int):
    assert_bytes32(secret_key, 'secret_key')
    assert_bytes32(from_address, 'from_address')
    assert_bytes32(to, 'to')
    assert_uint222(amount, 'amount')

    spender = address_of(secret_key)

    current_allowance = allowances[from_address, spender]
    assert current_allowance is not None, \
        f'NoAllowanceSet: {spender} has no allowance from {from_address}'
    assert current_allowance >= amount, \
        f'InsufficientAllowance: {spender} may spend {current_allowance} of {from_address}, needs {amount}'

    owner_balance = balances[from_address]
    assert owner_balance >= amount, \
        f'InsufficientBalance: {from_address} holds {owner_balance}, needs {amount}'

    move(from_address, to, amount)
    allowances[from_address, spender] = current_allowance - amount

    result = receipt(from_address, to, amount)
    result['spender'] = spender
    result['allowance'] = current_allowance - amount
    return result

# -----------------------------------------------------------------------------
# Invariants / Utilities
# -----------------------------------------------------------------------------

@export
def verify_supply_invariant():
    # Every stored balance adds up to the supply minted at construction
    held = 0
    count = 0
    for v in balances.all():
        if isinstance(v, int):
            held += v
            count += 1
    expected = total_supply.get()
    return {
        'ok': held == expected,
        'sum': held,
        'total_supply': expected,
        'accounts': count
    }
