"""Repository and GitHub App installation models."""

from pydantic import BaseModel


class Repository(BaseModel):
    """Repository identified by owner and name."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, full_name: str) -> "Repository":
        """Build from "owner/name"; raises ValueError on anything else."""
        owner, sep, name = full_name.strip().partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f"Invalid repository name: {full_name!r}")
        return cls(owner=owner, name=name)


class Installation(BaseModel):
    """GitHub App installation."""

    id: int
    account: str = ""
