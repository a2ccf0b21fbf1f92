class CrashGameError(Exception):
    """Base class for round engine errors."""


class ValidationError(CrashGameError):
    """A player command was rejected; round state is unchanged."""


class InsufficientFunds(CrashGameError):
    """The account ledger refused a debit that would go negative."""

    def __init__(self, account: str, balance=None, delta=None):
        self.account = account
        self.balance = balance
        self.delta = delta
        super().__init__(f"Insufficient balance for {account}")


class TimerInvariantViolation(CrashGameError):
    """A timer fired after the engine moved to another round or phase."""
