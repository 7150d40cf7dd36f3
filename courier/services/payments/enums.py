"""Payment and wallet enums."""

from enum import Enum


class PaymentTransactionStatus(str, Enum):
    """Status of a gateway payment transaction.

    Valid transitions:
    - PENDING -> COMPLETED, FAILED
    - COMPLETED -> (terminal state)
    - FAILED -> (terminal state)
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    def is_settled(self) -> bool:
        return self != PaymentTransactionStatus.PENDING


class PaymentPurpose(str, Enum):
    """What a gateway payment pays for."""

    ORDER = "order"
    WALLET_TOPUP = "wallet_topup"


class WalletTransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class WalletTransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
