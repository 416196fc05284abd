"""Registry of known bank statement layouts and content-based bank detection."""

from typing import Dict, List, Optional, Tuple

from ..models.core import BankLayout, LayoutConfig


LAYOUTS: Dict[BankLayout, LayoutConfig] = {
    BankLayout.ICICI: LayoutConfig(
        bank_name="ICICI Bank",
        date_columns=("value date", "transaction date", "date"),
        description_columns=("transaction remarks", "description", "narration", "particulars"),
        amount_columns=("amount", "transaction amount"),
        withdrawal_columns=("withdrawal amount", "debit", "withdrawal"),
        deposit_columns=("deposit amount", "credit", "deposit"),
        balance_columns=("balance", "available balance", "current balance"),
        date_format="DD/MM/YYYY",
    ),
    BankLayout.HDFC: LayoutConfig(
        bank_name="HDFC Bank",
        date_columns=("date", "transaction date", "value date"),
        description_columns=("narration", "description", "transaction details"),
        withdrawal_columns=("withdrawal amt", "withdrawal amount", "debit amount", "dr"),
        deposit_columns=("deposit amt", "deposit amount", "credit amount", "cr"),
        balance_columns=("closing balance", "balance"),
        date_format="DD/MM/YY",
    ),
    BankLayout.SBI: LayoutConfig(
        bank_name="State Bank of India",
        date_columns=("txn date", "value date", "date"),
        description_columns=("description", "remarks", "transaction details"),
        withdrawal_columns=("debit", "withdrawal"),
        deposit_columns=("credit", "deposit"),
        balance_columns=("balance",),
        date_format="DD MMM YYYY",
    ),
    BankLayout.AXIS: LayoutConfig(
        bank_name="Axis Bank",
        date_columns=("tran date", "value date", "date"),
        description_columns=("particulars", "description"),
        withdrawal_columns=("debit amount", "dr amount"),
        deposit_columns=("credit amount", "cr amount"),
        balance_columns=("balance",),
        date_format="DD-MM-YYYY",
    ),
    BankLayout.GENERIC: LayoutConfig(
        bank_name="Generic Bank",
        date_columns=("date", "transaction date", "value date", "txn date"),
        description_columns=("description", "narration", "particulars", "details", "transaction details"),
        amount_columns=("amount", "transaction amount", "txn amount"),
        withdrawal_columns=("withdrawal", "debit", "dr", "withdrawal amount", "debit amount"),
        deposit_columns=("deposit", "credit", "cr", "deposit amount", "credit amount"),
        balance_columns=("balance", "closing balance", "available balance"),
        date_format="DD/MM/YYYY",
    ),
}

# Checked in order; the first bank with a matching signature wins.
BANK_SIGNATURES: Tuple[Tuple[BankLayout, Tuple[str, ...]], ...] = (
    (BankLayout.ICICI, ("icici", "transaction remarks")),
    (BankLayout.HDFC, ("hdfc", "narration")),
    (BankLayout.SBI, ("sbi", "state bank")),
    (BankLayout.AXIS, ("axis",)),
)


def detect_bank(content: str) -> Optional[BankLayout]:
    """Guess the bank layout of a statement from its raw text.

    Returns None when no signature matches, in which case callers use the
    generic layout.
    """
    if not content:
        return None

    lower_content = content.lower()
    for layout, signatures in BANK_SIGNATURES:
        if any(signature in lower_content for signature in signatures):
            return layout
    return None


def get_layout(layout: Optional[BankLayout]) -> LayoutConfig:
    """Return the layout config, the generic one when ``layout`` is None"""
    if layout is None:
        return LAYOUTS[BankLayout.GENERIC]
    return LAYOUTS[layout]


def supported_bank_names() -> List[str]:
    """Names of the supported layouts, for user-facing hints"""
    names = [layout.value for layout, _ in BANK_SIGNATURES]
    names.append("generic CSV")
    return names
