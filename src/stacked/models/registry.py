"""Registry document model.

RegistryDocument is the whole-file view of the branch registry: every
tracked Branch keyed by name, the trunk name, and a version counter used
for compare-and-swap writes.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError

from stacked.models.branch import Branch

DEFAULT_TRUNK = "main"


class RegistryDocument(BaseModel):
    """Immutable snapshot of one repository's branch registry."""

    model_config = {"frozen": True}

    version: int = Field(default=0, ge=0)
    trunk: str = DEFAULT_TRUNK
    branches: dict[str, Branch] = Field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return name in self.branches

    def get(self, name: str) -> Branch | None:
        return self.branches.get(name)

    def is_trunk(self, name: str) -> bool:
        return name == self.trunk

    def with_branch(self, branch: Branch) -> RegistryDocument:
        """Return a copy with *branch* inserted or replaced."""
        branches = dict(self.branches)
        branches[branch.name] = branch
        return self.model_copy(update={"branches": branches})

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk layout (names are keys, not fields)."""
        return {
            "version": self.version,
            "trunk": self.trunk,
            "branches": {
                name: branch.model_dump(mode="json", by_alias=True, exclude={"name"})
                for name, branch in sorted(self.branches.items())
            },
        }

    @classmethod
    def from_json_dict(
        cls, data: Any, *, default_trunk: str = DEFAULT_TRUNK
    ) -> RegistryDocument:
        """Parse the on-disk layout.

        Raises:
            ValueError: If the shape is wrong or a record fails validation.
            pydantic.ValidationError: If top-level fields fail validation.
        """
        if not isinstance(data, dict):
            raise ValueError("top-level value must be an object")
        raw_branches = data.get("branches", {})
        if not isinstance(raw_branches, dict):
            raise ValueError("'branches' must be an object keyed by branch name")
        branches: dict[str, Branch] = {}
        for name, record in raw_branches.items():
            if not isinstance(record, dict):
                raise ValueError(f"record for '{name}' must be an object")
            try:
                branches[name] = Branch.model_validate({**record, "name": name})
            except ValidationError as e:
                problems = ", ".join(
                    f"{'.'.join(str(p) for p in err['loc'])} ({err['msg']})"
                    for err in e.errors()
                )
                raise ValueError(f"branch '{name}': {problems}") from e
        return cls(
            version=data.get("version", 0),
            trunk=data.get("trunk") or default_trunk,
            branches=branches,
        )
