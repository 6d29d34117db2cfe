"""
A wallet with an invariant, old() postconditions and a named constructor.

    python3 examples/wallet.py
    contractweave examples/wallet.py --stdout
"""

from contractweave import (
    ContractViolation,
    constructor,
    contract,
    function_contract,
    postcondition,
    precondition,
)


@contract({"balance >= 0": "Balance must never be negative."})
class Wallet:
    balance: int

    @precondition({"balance >= 0": "Opening balance must be non-negative."})
    def _init(self, balance: int = 0):
        self.balance = balance
        self.history = []

    @constructor
    @postcondition({"result.balance == cents // 100": "Whole units are kept."})
    def _from_cents(self, cents: int):
        self.balance = cents // 100
        self.history = []

    @precondition({"amount > 0": "Deposit amount must be positive."})
    @postcondition({
        "balance == old(balance) + amount": "Balance must grow by the deposited amount.",
        "len(history) == len(old(history)) + 1": "Every deposit is recorded.",
    })
    def _deposit(self, amount: int) -> None:
        self.balance += amount
        self.history.append(amount)

    @precondition({
        "amount > 0": "Withdrawal amount must be positive.",
        "amount <= balance": "Insufficient funds.",
    })
    @postcondition({"result == old(balance) - amount": "Balance must shrink by the withdrawn amount."})
    def _withdraw(self, amount: int) -> int:
        self.balance -= amount
        self.history.append(-amount)
        return self.balance


@function_contract(
    preconditions={"rate >= 0": "Rate must be non-negative."},
    postconditions={"result >= principal": "Interest never reduces the principal."},
)
def _with_interest(principal: int, rate: float, *, years: int = 1) -> float:
    return principal * (1 + rate) ** years


if __name__ == "__main__":
    wallet = Wallet(100)
    wallet.deposit(50)
    print(f"after deposit: {wallet.balance}")
    print(f"after withdraw: {wallet.withdraw(30)}")
    print(f"from cents: {Wallet.from_cents(12345).balance}")
    print(f"with interest: {with_interest(100, 0.05, years=2):.2f}")  # noqa: F821

    for attempt in (lambda: wallet.withdraw(1000), lambda: wallet.deposit(-5), lambda: Wallet(-1)):
        try:
            attempt()
        except ContractViolation as e:
            print(f"{type(e).__name__}: {e}")
