import hashlib
import logging
import secrets
from pathlib import Path

# ---- Chain-constant parameters & helpers (mirror contract) ----

MAX_UINT222 = 2**222 - 1
MAX_UINT8 = 2**8 - 1

ADDRESS_TAG = "MERC20:address:v1"

CONTRACT_NAME = "con_merc20_token"
CONTRACT_PATH = Path(__file__).resolve().parent / "con_merc20_token.py"
PRIVATE_STATE_KEY = "MERC20PrivateState"


def sha3_hex(s: str) -> str:
    # Matches Xian env semantics for non-hex input
    return hashlib.sha3_256(s.encode("utf-8")).hexdigest()


def compute_address(secret_key: str) -> str:
    """
    Mirrors on-chain compute_address(): the public address committed to by
    `secret_key`. Only the address ever reaches the ledger.
    """
    secret_key = normalize_bytes32(secret_key, "secret_key")
    return sha3_hex(ADDRESS_TAG + "|" + secret_key)


def normalize_bytes32(value, label: str = "value") -> str:
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).hex()
    if not isinstance(value, str):
        raise InvalidArgument(f"{label} must be 32 bytes, got {type(value).__name__}")
    value = value.lower()
    if len(value) != 64:
        raise InvalidArgument(f"{label} must be 32 bytes of hex")
    try:
        bytes.fromhex(value)
    except ValueError as exc:
        raise InvalidArgument(f"{label} must be 32 bytes of hex") from exc
    return value


def random_secret_key() -> str:
    return secrets.token_hex(32)


def random_address() -> str:
    return secrets.token_hex(32)

# ---- Errors -----------------------------------------------------------------


class LedgerError(Exception):
    """Rejection of a proposed ledger operation. The ledger is left unchanged."""

    kind = "LedgerError"


class InsufficientBalance(LedgerError):
    kind = "InsufficientBalance"


class InsufficientAllowance(LedgerError):
    kind = "InsufficientAllowance"


class NoAllowanceSet(LedgerError):
    kind = "NoAllowanceSet"


class ArithmeticOverflow(LedgerError):
    kind = "ArithmeticOverflow"


class InvalidArgument(LedgerError, ValueError):
    kind = "InvalidArgument"


ERRORS = {
    cls.kind: cls
    for cls in (InsufficientBalance, InsufficientAllowance, NoAllowanceSet, ArithmeticOverflow, InvalidArgument)
}


def classify_error(exc: Exception):
    """
    Map a contract rejection ("<Kind>: detail") to its typed LedgerError.
    Returns None when the message carries no known kind.
    """
    message = str(exc)
    kind, sep, detail = message.partition(":")
    if not sep or kind.strip() not in ERRORS:
        return None
    return ERRORS[kind.strip()](detail.strip())

# ---- Checked uint222 arithmetic ----------------------------------------------


def check_uint222(value, label: str = "amount") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{label} must be an integer")
    if not 0 <= value <= MAX_UINT222:
        raise InvalidArgument(f"{label} {value} is outside the uint222 range")
    return value


def checked_add(a: int, b: int) -> int:
    if a + b > MAX_UINT222:
        raise ArithmeticOverflow(f"{a} + {b} exceeds the uint222 range")
    return a + b


def checked_sub(a: int, b: int, error=InsufficientBalance) -> int:
    if b > a:
        raise error(f"{a} - {b} is below zero")
    return a - b

# ---- Private state (caller-local, never on-chain) ----------------------------


def create_private_state(secret_key: str) -> dict:
    return {'secret_key': normalize_bytes32(secret_key, "secret_key")}


def get_secret_key(private_state: dict) -> str:
    return private_state['secret_key']


class PrivateStateProvider:
    """
    In-memory store for caller-local private state, keyed like
    PRIVATE_STATE_KEY. Nothing kept here is ever submitted except through
    get_secret_key() at call time.
    """
    def __init__(self):
        self._states = {}

    def get(self, key: str = PRIVATE_STATE_KEY):
        return self._states.get(key)

    def set(self, key: str, state: dict):
        self._states[key] = state
        return state

    def get_or_create(self, key: str = PRIVATE_STATE_KEY):
        existing = self.get(key)
        if existing is not None:
            return existing
        return self.set(key, create_private_state(random_secret_key()))

# ---- High-level builders -----------------------------------------------------


def build_transfer(secret_key: str, to: str, amount: int, sender_balance: int = None):
    """
    Returns kwargs for contract.transfer():
        (secret_key, to, amount)
    Pass `sender_balance` to reject an overdraft before submitting.
    """
    amount = check_uint222(amount)
    if sender_balance is not None:
        checked_sub(sender_balance, amount, InsufficientBalance)
    return {
        'secret_key': normalize_bytes32(secret_key, "secret_key"),
        'to': normalize_bytes32(to, "to"),
        'amount': amount
    }


def build_approve(secret_key: str, spender: str, amount: int):
    """
    Returns kwargs for contract.approve():
        (secret_key, spender, amount)
    The contract replaces any prior allowance; see build_increase_allowance.
    """
    return {
        'secret_key': normalize_bytes32(secret_key, "secret_key"),
        'spender': normalize_bytes32(spender, "spender"),
        'amount': check_uint222(amount)
    }


def build_increase_allowance(secret_key: str, spender: str, current_allowance: int, delta: int):
    # Additive semantics are composed here; on-chain approve stays absolute
    new_amount = checked_add(check_uint222(current_allowance, "current_allowance"), check_uint222(delta, "delta"))
    return build_approve(secret_key, spender, new_amount)


def build_transfer_from(secret_key: str,
                        from_address: str,
                        to: str,
                        amount: int,
                        current_allowance: int = None,
                        owner_balance: int = None):
    """
    Returns kwargs for contract.transfer_from():
        (secret_key, from_address, to, amount)
    Optional allowance / balance reads are checked in the contract's order.
    """
    amount = check_uint222(amount)
    if current_allowance is not None:
        checked_sub(current_allowance, amount, InsufficientAllowance)
    if owner_balance is not None:
        checked_sub(owner_balance, amount, InsufficientBalance)
    return {
        'secret_key': normalize_bytes32(secret_key, "secret_key"),
        'from_address': normalize_bytes32(from_address, "from_address"),
        'to': normalize_bytes32(to, "to"),
        'amount': amount
    }

# ---- Deployed-contract API ---------------------------------------------------


class MERC20API:
    """
    Wraps a deployed MERC-20 contract for one caller.

    The caller's secret key lives in `private_state_provider` and is read
    through get_secret_key() for every mutating call. Contract rejections are
    re-raised as typed LedgerError subclasses.
    """
    def __init__(self, contract, private_state_provider: PrivateStateProvider, logger=None):
        self.contract = contract
        self.private_state_provider = private_state_provider
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def deploy(cls, client, private_state_provider: PrivateStateProvider, *,
               initial_supply: int,
               mint_address: str,
               name: str,
               symbol: str,
               decimals: int,
               contract_name: str = CONTRACT_NAME,
               logger=None):
        log = logger or logging.getLogger(__name__)
        log.info("deploying MERC-20 contract %s", contract_name)
        private_state_provider.get_or_create(PRIVATE_STATE_KEY)
        client.submit(
            CONTRACT_PATH.read_text(),
            name=contract_name,
            owner=None,
            constructor_args={
                'initial_supply': check_uint222(initial_supply, "initial_supply"),
                'mint_address': normalize_bytes32(mint_address, "mint_address"),
                'name': name,
                'symbol': symbol,
                'decimals': decimals,
            },
        )
        log.debug("deployed %s with supply %s to %s", contract_name, initial_supply, mint_address)
        return cls(client.get_contract(contract_name), private_state_provider, logger=log)

    @classmethod
    def join(cls, client, private_state_provider: PrivateStateProvider, contract_name: str = CONTRACT_NAME, logger=None):
        log = logger or logging.getLogger(__name__)
        log.info("joining MERC-20 contract %s", contract_name)
        contract = client.get_contract(contract_name)
        if contract is None:
            raise LookupError(f"contract {contract_name} not found")
        private_state_provider.get_or_create(PRIVATE_STATE_KEY)
        return cls(contract, private_state_provider, logger=log)

    @property
    def secret_key(self) -> str:
        return get_secret_key(self.private_state_provider.get_or_create(PRIVATE_STATE_KEY))

    @property
    def address(self) -> str:
        return compute_address(self.secret_key)

    def _submit(self, method: str, **kwargs):
        try:
            return getattr(self.contract, method)(**kwargs)
        except AssertionError as exc:
            typed = classify_error(exc)
            if typed is None:
                raise
            self.logger.info("%s rejected: %s", method, typed)
            raise typed from exc

    def transfer(self, to: str, amount: int):
        self.logger.info("transferring %s tokens to %s", amount, to)
        return self._submit('transfer', **build_transfer(self.secret_key, to, amount))

    def approve(self, spender: str, amount: int):
        self.logger.info("approving %s tokens for %s", amount, spender)
        return self._submit('approve', **build_approve(self.secret_key, spender, amount))

    def increase_allowance(self, spender: str, delta: int):
        current = self.allowance(self.address, spender)
        self.logger.info("raising allowance for %s from %s by %s", spender, current, delta)
        return self._submit('approve', **build_increase_allowance(self.secret_key, spender, current, delta))

    def transfer_from(self, from_address: str, to: str, amount: int):
        self.logger.info("transferring %s tokens from %s to %s", amount, from_address, to)
        return self._submit('transfer_from', **build_transfer_from(self.secret_key, from_address, to, amount))

    def balance_of(self, address: str) -> int:
        return self.contract.balance_of(owner=normalize_bytes32(address, "address"))

    def allowance(self, owner: str, spender: str) -> int:
        return self.contract.allowance(
            owner=normalize_bytes32(owner, "owner"),
            spender=normalize_bytes32(spender, "spender"),
        )

    def derived_state(self) -> dict:
        """Combine the public ledger with this caller's private state."""
        metadata = self.contract.get_metadata()
        user_address = self.address
        state = {
            'user_address': user_address,
            'user_balance': self.balance_of(user_address),
            'token_name': metadata['name'],
            'token_symbol': metadata['symbol'],
            'token_decimals': metadata['decimals'],
            'total_supply': metadata['total_supply'],
        }
        self.logger.debug("derived state: %s", state)
        return state
