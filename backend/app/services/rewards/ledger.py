"""
Coin Ledger

Append-only coin transaction log plus the derived per-user wallet.
Source of truth for every reward and debit in the accountability economy.

Core Principles:
1. Transactions are never updated or deleted.
2. wallet.balance == sum(transaction.amount) for the wallet, always.
3. wallet.total_earned == sum of positive amounts; debits never touch it.
4. Balance never goes below zero. The debit is a conditional UPDATE
   (balance >= amount) evaluated by the store, not a check against a
   value read earlier.
5. award_coins / deduct_coins are the only mutation primitives.
"""
import logging
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models.db_models import CoinWalletDB, CoinTransactionDB, utcnow


logger = logging.getLogger(__name__)


# =============================================================================
# COIN RULES
# =============================================================================

class RewardReason:
    """Reason codes written on ledger transactions."""
    COMPLAINT_SUBMITTED = "COMPLAINT_SUBMITTED"
    PHOTO_EVIDENCE = "PHOTO_EVIDENCE"
    FIRST_COMPLAINT = "FIRST_COMPLAINT"
    MILESTONE_10 = "MILESTONE_10"
    MILESTONE_25 = "MILESTONE_25"
    COMPLAINT_RESOLVED = "COMPLAINT_RESOLVED"
    SLA_RESOLVED = "SLA_RESOLVED"
    SLA_BREACH_CITIZEN = "SLA_BREACH_CITIZEN"
    REWARD_REDEEMED = "REWARD_REDEEMED"


COIN_RULES = {
    RewardReason.COMPLAINT_SUBMITTED: 10,
    RewardReason.PHOTO_EVIDENCE: 5,
    RewardReason.FIRST_COMPLAINT: 20,
    RewardReason.MILESTONE_10: 50,
    RewardReason.MILESTONE_25: 100,
    RewardReason.COMPLAINT_RESOLVED: 15,
    RewardReason.SLA_RESOLVED: 25,
    RewardReason.SLA_BREACH_CITIZEN: 10,
}

# complaint count -> milestone reason
COMPLAINT_MILESTONES = {
    10: RewardReason.MILESTONE_10,
    25: RewardReason.MILESTONE_25,
}


# =============================================================================
# ERRORS
# =============================================================================

class LedgerError(Exception):
    """Raised when a ledger operation fails."""
    code = "LEDGER_ERROR"


class InsufficientBalance(LedgerError):
    """Raised when a debit exceeds the current wallet balance."""
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, user_id: str, requested: int, balance: int):
        self.user_id = user_id
        self.requested = requested
        self.balance = balance
        super().__init__(f"Insufficient balance: requested {requested}, available {balance}")


# =============================================================================
# LEDGER SERVICE
# =============================================================================

class Ledger:
    """
    Wallet + transaction log.

    Each award/deduct is one atomic unit (transaction insert + balance
    update). Pass commit=False to enlist the operation in a larger unit
    owned by the caller (e.g. redemption); the caller then commits or
    rolls back.
    """

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # WALLETS
    # =========================================================================

    def get_wallet(self, user_id: str) -> Optional[CoinWalletDB]:
        """Read a wallet without creating it."""
        return self.db.query(CoinWalletDB).filter(CoinWalletDB.user_id == user_id).first()

    def get_or_create_wallet(self, user_id: str) -> CoinWalletDB:
        """
        Idempotent lazy wallet creation.

        Creation commits on its own. A concurrent creator losing the
        unique(user_id) race re-reads the winner's row.
        """
        wallet = self.get_wallet(user_id)
        if wallet is not None:
            return wallet

        wallet = CoinWalletDB(id=str(uuid4()), user_id=user_id, balance=0, total_earned=0)
        self.db.add(wallet)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.debug(f"Wallet for user {user_id} created concurrently, re-reading")
            wallet = self.get_wallet(user_id)
            if wallet is None:
                raise
        return wallet

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def award_coins(
        self,
        user_id: str,
        amount: int,
        reason: str,
        reference_id: Optional[str] = None,
        commit: bool = True,
    ) -> CoinWalletDB:
        """
        Credit a wallet. Always succeeds for a positive amount.

        Increments balance and total_earned in one UPDATE alongside the
        transaction insert.
        """
        if amount <= 0:
            raise ValueError(f"Award amount must be positive, got {amount}")

        wallet = self.get_or_create_wallet(user_id)

        try:
            self._append_transaction(wallet.id, amount, reason, reference_id)
            self.db.query(CoinWalletDB).filter(CoinWalletDB.id == wallet.id).update(
                {
                    CoinWalletDB.balance: CoinWalletDB.balance + amount,
                    CoinWalletDB.total_earned: CoinWalletDB.total_earned + amount,
                    CoinWalletDB.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except Exception:
            if commit:
                self.db.rollback()
            raise

        self.db.refresh(wallet)
        return wallet

    def deduct_coins(
        self,
        user_id: str,
        amount: int,
        reason: str,
        reference_id: Optional[str] = None,
        commit: bool = True,
    ) -> CoinWalletDB:
        """
        Debit a wallet.

        Raises InsufficientBalance (with no partial effect) if amount exceeds
        the balance at the moment of the UPDATE.
        """
        if amount <= 0:
            raise ValueError(f"Deduct amount must be positive, got {amount}")

        wallet = self.get_or_create_wallet(user_id)

        try:
            updated = self.db.query(CoinWalletDB).filter(
                CoinWalletDB.id == wallet.id,
                CoinWalletDB.balance >= amount,
            ).update(
                {
                    CoinWalletDB.balance: CoinWalletDB.balance - amount,
                    CoinWalletDB.updated_at: utcnow(),
                },
                synchronize_session=False,
            )

            if updated == 0:
                self.db.refresh(wallet)
                raise InsufficientBalance(user_id, amount, wallet.balance)

            self._append_transaction(wallet.id, -amount, reason, reference_id)
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except Exception:
            if commit:
                self.db.rollback()
            raise

        self.db.refresh(wallet)
        return wallet

    def _append_transaction(
        self,
        wallet_id: str,
        amount: int,
        reason: str,
        reference_id: Optional[str],
    ) -> CoinTransactionDB:
        transaction = CoinTransactionDB(
            id=str(uuid4()),
            wallet_id=wallet_id,
            amount=amount,
            reason=reason,
            reference_id=reference_id,
            created_at=utcnow(),
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

    # =========================================================================
    # READS
    # =========================================================================

    def get_transactions(self, user_id: str, limit: int = 20) -> List[CoinTransactionDB]:
        """Most recent transactions first."""
        wallet = self.get_wallet(user_id)
        if wallet is None:
            return []

        return self.db.query(CoinTransactionDB).filter(
            CoinTransactionDB.wallet_id == wallet.id
        ).order_by(CoinTransactionDB.created_at.desc()).limit(limit).all()

    def count_reason(self, user_id: str, reason: str, reference_id: Optional[str] = None) -> int:
        """Number of transactions with a reason code, optionally for one reference."""
        wallet = self.get_wallet(user_id)
        if wallet is None:
            return 0

        query = self.db.query(CoinTransactionDB).filter(
            CoinTransactionDB.wallet_id == wallet.id,
            CoinTransactionDB.reason == reason,
        )
        if reference_id is not None:
            query = query.filter(CoinTransactionDB.reference_id == reference_id)
        return query.count()
