"""CI check run attached to a commit."""

from pydantic import BaseModel


class CheckRun(BaseModel):
    """Check run result for a head commit."""

    name: str = ""
    status: str
    conclusion: str | None = None
