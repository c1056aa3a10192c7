"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/Caller
  2xxx: Ledger/Balances
  3xxx: Contract/Milestone
  4xxx: Withdrawal
  5xxx: Payout provider
  9xxx: System

Settlement failures are grouped under five families so callers can branch on
the kind of failure without matching individual codes:
  ValidationError         — bad role or state for the requested transition
  InsufficientFundsError  — contract or balance shortfall
  ConcurrentConflictError — a guarded update lost the race
  ProviderError           — external payout failure (always compensated)
  IntegrityViolationError — ledger drift, needs manual reconciliation
"""

from src.fm_common.cents import cents_to_display


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class ValidationError(AppError):
    pass


class InsufficientFundsError(AppError):
    pass


class ConcurrentConflictError(AppError):
    pass


class ProviderError(AppError):
    pass


class IntegrityViolationError(AppError):
    pass


# --- 1xxx: Auth/Caller ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired token", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class PermissionDeniedError(ValidationError):
    def __init__(self, action: str) -> None:
        super().__init__(1006, f"Not allowed to {action}", 403)


# --- 2xxx: Ledger/Balances ---

class FreelancerNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Freelancer not found: {user_id}", 404)


class InsufficientAvailableBalanceError(InsufficientFundsError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            "Insufficient available balance: "
            f"need {cents_to_display(required)}, have {cents_to_display(available)}",
            422,
        )


class InsufficientPendingBalanceError(IntegrityViolationError):
    def __init__(self, required: int, pending: int) -> None:
        super().__init__(
            2003,
            "Insufficient pending balance to release milestone: "
            f"need {cents_to_display(required)}, have {cents_to_display(pending)}. "
            "Please contact support.",
            409,
        )


class ConcurrentBalanceConflictError(ConcurrentConflictError):
    def __init__(self, user_id: str) -> None:
        super().__init__(
            2004,
            f"Balance for {user_id} changed concurrently; re-check and retry",
            409,
        )


# --- 3xxx: Contract/Milestone ---

class ContractNotFoundError(AppError):
    def __init__(self, contract_id: str) -> None:
        super().__init__(3001, f"Contract not found: {contract_id}", 404)


class ContractNotActiveError(ValidationError):
    def __init__(self, contract_id: str, status: str) -> None:
        super().__init__(3002, f"Contract {contract_id} is not active (status={status})", 422)


class MilestoneNotFoundError(AppError):
    def __init__(self, milestone_id: str) -> None:
        super().__init__(3003, f"Milestone not found: {milestone_id}", 404)


class InvalidStateTransitionError(ValidationError):
    def __init__(self, entity: str, entity_id: str, status: str, action: str) -> None:
        super().__init__(
            3004,
            f"Cannot {action} {entity} {entity_id} in status {status}",
            422,
        )


class DeliverablesRequiredError(ValidationError):
    def __init__(self) -> None:
        super().__init__(3005, "At least one deliverable is required", 422)


class FeedbackRequiredError(ValidationError):
    def __init__(self) -> None:
        super().__init__(3006, "Feedback is required when rejecting a milestone", 422)


class DuplicateMilestoneOrderError(ValidationError):
    def __init__(self, order: int) -> None:
        super().__init__(3007, f"Milestone order {order} is already used in this contract", 409)


class MilestoneLockedError(ValidationError):
    def __init__(self, milestone_id: str, status: str) -> None:
        super().__init__(
            3008,
            f"Milestone {milestone_id} can no longer be modified (status={status})",
            422,
        )


class EscrowNotFundedError(InsufficientFundsError):
    def __init__(self, contract_id: str) -> None:
        super().__init__(3009, f"Escrow for contract {contract_id} has not been funded", 422)


class InsufficientContractBalanceError(InsufficientFundsError):
    def __init__(self, required: int, remaining: int) -> None:
        super().__init__(
            3010,
            "Insufficient contract balance to release milestone: "
            f"need {cents_to_display(required)}, remaining {cents_to_display(remaining)}",
            422,
        )


class SettlementConflictError(ConcurrentConflictError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(3011, f"{entity} {entity_id} was modified concurrently", 409)


# --- 4xxx: Withdrawal ---

class WithdrawalNotFoundError(AppError):
    def __init__(self, withdrawal_id: str) -> None:
        super().__init__(4001, f"Withdrawal not found: {withdrawal_id}", 404)


class TooManyOpenWithdrawalsError(ValidationError):
    def __init__(self, limit: int) -> None:
        super().__init__(4002, f"At most {limit} withdrawals may be pending at once", 422)


class BelowMinimumPayoutError(ValidationError):
    def __init__(self, final_amount: int, minimum: int) -> None:
        super().__init__(
            4003,
            f"Withdrawal amount after fees ({cents_to_display(final_amount)}) "
            f"is below the minimum payout of {cents_to_display(minimum)}",
            422,
        )


class ProcessingFeeImmutableError(ValidationError):
    def __init__(self, withdrawal_id: str) -> None:
        super().__init__(
            4004, f"Processing fee of withdrawal {withdrawal_id} cannot be changed", 422
        )


class InvalidPayoutDestinationError(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(4005, f"Invalid payout destination: {detail}", 422)


class TransferReferenceRequiredError(ValidationError):
    def __init__(self, withdrawal_id: str, method: str) -> None:
        super().__init__(
            4006,
            f"Withdrawal {withdrawal_id} is paid out on manual rails ({method}); "
            "supply the external_transfer_id of the completed transfer",
            422,
        )


# --- 5xxx: Payout provider ---

class PayoutProviderError(ProviderError):
    def __init__(self, detail: str) -> None:
        super().__init__(5001, f"Payout provider error: {detail}", 502)


class PayoutFailedError(ProviderError):
    def __init__(self, withdrawal_id: str, reason: str) -> None:
        super().__init__(
            5002,
            f"Withdrawal {withdrawal_id} failed, balance refunded: {reason}",
            502,
        )


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
