"""Request-scoped identifiers stamped onto every log record.

The request-id middleware sets request_id_var, session auth sets user_id_var,
and case handlers set case_id_var. The completion-logging middleware clears
the user and case values after each response.
"""

from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")
case_id_var: ContextVar[str] = ContextVar("case_id", default="")
