# services/ledger.py

from typing import Optional
from supabase import Client

from core.logging_config import logger


def record_transaction(
    client: Client,
    *,
    residence_id: int,
    transaction_type: str,
    amount: float,
    reference_table: str,
    reference_id,
    method: Optional[str] = None,
    description: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Optional[dict]:
    """
    Append a row to transaction_history with the running balance.

    balance_after = previous balance_after ± amount (expenses subtract).
    A failed write is logged; the money movement itself already happened.
    """
    try:
        last = (
            client.table("transaction_history")
            .select("balance_after")
            .eq("residence_id", residence_id)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        ).data or []
        previous = float(last[0].get("balance_after") or 0) if last else 0.0

        signed = -abs(amount) if transaction_type == "expense" else abs(amount)
        row = {
            "residence_id": residence_id,
            "transaction_type": transaction_type,
            "reference_table": reference_table,
            "reference_id": reference_id,
            "amount": round(abs(amount), 2),
            "balance_after": round(previous + signed, 2),
            "method": method,
            "description": description,
            "created_by": created_by,
        }
        result = client.table("transaction_history").insert(row).execute()
        return result.data[0] if result.data else row
    except Exception as e:
        logger.error(f"Failed to record {transaction_type} transaction for {reference_table} {reference_id}: {e}")
        return None
