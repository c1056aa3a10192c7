"""Ledger invariant findings — pure dataclasses."""

from dataclasses import dataclass, field


@dataclass
class BalanceViolation:
    user_id: str
    pending_balance: int
    available_balance: int


@dataclass
class ContractViolation:
    contract_id: str
    total_amount: int
    released_amount: int
    milestone_count: int
    completed_milestones: int


@dataclass
class OpenWithdrawalViolation:
    freelancer_id: str
    open_count: int


@dataclass
class InvariantReport:
    negative_balances: list[BalanceViolation] = field(default_factory=list)
    contract_violations: list[ContractViolation] = field(default_factory=list)
    open_withdrawal_violations: list[OpenWithdrawalViolation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not (
            self.negative_balances or self.contract_violations or self.open_withdrawal_violations
        )
