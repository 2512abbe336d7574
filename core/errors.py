# core/errors.py

from typing import Optional, Tuple

from fastapi import HTTPException

from core.logging_config import logger

# PostgREST / Postgres error codes we turn into client errors
PG_ERROR_CODES = {
    "23505": (400, "Record already exists"),   # unique_violation
    "23503": (400, "Invalid reference"),       # foreign_key_violation
    "23502": (400, "Missing required field"),  # not_null_violation
    "PGRST116": (404, "Resource not found"),   # .single() matched no row
}

# Fallback when the error carries no code
PG_ERROR_KEYWORDS = (
    (("duplicate", "unique"), (400, "Record already exists")),
    (("foreign key",), (400, "Invalid reference")),
    (("not found", "does not exist"), (404, "Resource not found")),
)


def extract_supabase_error(error: Exception) -> Tuple[Optional[str], str]:
    """
    (code, message) from a supabase-py error. PostgREST's APIError carries
    both; GoTrue errors and plain exceptions only have a message.
    """
    code = getattr(error, "code", None)
    message = getattr(error, "message", None)
    if not message and error.args:
        message = error.args[0]
    return (str(code) if code else None), str(message or error or "Unknown Supabase error")


def supabase_error(error: Exception, message: str = "Supabase error"):
    """Always raises a 500 carrying the database message."""
    _, detail = extract_supabase_error(error)
    raise HTTPException(status_code=500, detail=f"{message}: {detail}")


def handle_supabase_error(error: Exception, operation: str = "Database operation",
                          status_code: int = 500) -> HTTPException:
    """
    Translate a write failure into the HTTPException the client should see.
    Returned, not raised:

        except Exception as e:
            raise handle_supabase_error(e, "Failed to create fee")
    """
    code, detail = extract_supabase_error(error)
    logger.error(f"{operation}: [{code or '-'}] {detail}")

    mapped = PG_ERROR_CODES.get(code)
    if not mapped:
        lowered = detail.lower()
        for keywords, result in PG_ERROR_KEYWORDS:
            if any(k in lowered for k in keywords):
                mapped = result
                break

    if mapped:
        return HTTPException(status_code=mapped[0], detail=f"{operation}: {mapped[1]}")
    return HTTPException(status_code=status_code, detail=f"{operation} failed")
