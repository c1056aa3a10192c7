"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class UserRole(str, Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"
    ADMIN = "admin"


class BalanceField(str, Enum):
    """The only balance columns the ledger primitives may touch."""
    PENDING = "pending_balance"
    AVAILABLE = "available_balance"


class ContractStatus(str, Enum):
    PENDING = "PENDING"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


class JobStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MilestoneStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class WithdrawalStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class WithdrawalMethod(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    PAYPAL = "PAYPAL"
    STRIPE = "STRIPE"


class TransactionType(str, Enum):
    PAYMENT = "PAYMENT"          # milestone release escrow -> freelancer
    WITHDRAWAL = "WITHDRAWAL"
    REFUND = "REFUND"
    FEE = "FEE"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class RelatedEntityType(str, Enum):
    CONTRACT = "CONTRACT"
    MILESTONE = "MILESTONE"
    WITHDRAWAL = "WITHDRAWAL"


class NotificationType(str, Enum):
    MILESTONE_CREATED = "MILESTONE_CREATED"
    MILESTONE_SUBMITTED = "MILESTONE_SUBMITTED"
    MILESTONE_APPROVED = "MILESTONE_APPROVED"
    MILESTONE_REJECTED = "MILESTONE_REJECTED"
    PAYMENT_RELEASED = "PAYMENT_RELEASED"
    CONTRACT_COMPLETED = "CONTRACT_COMPLETED"
    WITHDRAWAL_REQUESTED = "WITHDRAWAL_REQUESTED"
    WITHDRAWAL_PROCESSING = "WITHDRAWAL_PROCESSING"
    WITHDRAWAL_COMPLETED = "WITHDRAWAL_COMPLETED"
    WITHDRAWAL_FAILED = "WITHDRAWAL_FAILED"


class OutboxStatus(str, Enum):
    PENDING = "PENDING"
    DELIVERED = "DELIVERED"
    DEAD = "DEAD"


class ReconciliationIssueKind(str, Enum):
    PENDING_BALANCE_DRIFT = "PENDING_BALANCE_DRIFT"
    REFUND_FAILED = "REFUND_FAILED"
    ORPHANED_TRANSFER = "ORPHANED_TRANSFER"
