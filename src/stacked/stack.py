"""Stack facade -- the public entry point for stacked.

Wires a RegistryStore, the version-control port, and configuration into a
single object exposing the command operations.  Every mutation goes
through :func:`stacked.retry.write_with_retry`, so a concurrent writer
costs a reload and recompute, never a lost update.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from stacked.exceptions import VersionControlQueryError
from stacked.models.config import StackConfig
from stacked.operations import branch as branch_ops
from stacked.operations import contract as contract_ops
from stacked.operations import dag
from stacked.operations.health import compute_health
from stacked.operations.importing import ImportPlan, apply_import, infer
from stacked.retry import write_with_retry
from stacked.storage.files import RegistryStore
from stacked.storage.paths import available_specs, resolve_paths

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from stacked.context import InvocationContext
    from stacked.models.branch import Branch, BranchStatus
    from stacked.models.contract import ImportPrompt, PRSuggestion
    from stacked.models.health import HealthReport
    from stacked.models.registry import RegistryDocument
    from stacked.protocols import VersionControlPort
    from stacked.storage.paths import StackPaths
    from stacked.storage.repositories import RegistryRepository

logger = logging.getLogger(__name__)


class Stack:
    """Branch registry for one repository.

    Create one via :meth:`Stack.open` (resolves paths from an invocation
    context) or the constructor (testing / DI).

    Example::

        stack = Stack.open(InvocationContext.from_process())
        stack.create("auth-api", "main", spec_id="001-auth")
        stack.create("auth-ui", "auth-api")
        for report in stack.status().values():
            print(report.name, report.state)
    """

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def __init__(
        self,
        store: RegistryRepository,
        *,
        config: StackConfig | None = None,
        vc: VersionControlPort | None = None,
        specs: list[str] | None = None,
        paths: StackPaths | None = None,
    ) -> None:
        self._store = store
        self._config = config or StackConfig()
        self._vc = vc
        self._specs = list(specs or [])
        self._paths = paths

    @classmethod
    def open(
        cls,
        context: InvocationContext,
        *,
        config: StackConfig | None = None,
        root: str | Path | None = None,
        vc: VersionControlPort | None = None,
    ) -> Stack:
        """Open the registry of the repository *context* points into.

        Args:
            context: Invocation context (cwd, environment, session).
            config: Configuration.  Defaults created if *None*.
            root: Explicit repository root, overriding discovery.
            vc: Version-control facts; None means none are available.
        """
        config = config or StackConfig()
        paths = resolve_paths(context, config, root)
        store = RegistryStore(paths.registry, trunk=config.trunk)
        specs = available_specs(paths, config.spec_id_pattern)
        logger.debug("Opened registry %s", paths.registry)
        return cls(store, config=config, vc=vc, specs=specs, paths=paths)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> StackConfig:
        return self._config

    @property
    def paths(self) -> StackPaths | None:
        return self._paths

    @property
    def vc(self) -> VersionControlPort | None:
        return self._vc

    @property
    def available_specs(self) -> list[str]:
        return list(self._specs)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def load(self) -> RegistryDocument:
        return self._store.load()

    def get(self, name: str) -> Branch:
        return branch_ops.require_branch(self.load(), name)

    def list(self, spec_id: str | None = None) -> list[Branch]:
        """Tracked branches in topological order, optionally for one spec."""
        doc = self.load()
        if spec_id is not None:
            return branch_ops.branches_for_spec(doc, spec_id)
        return [doc.branches[n] for n in dag.topological_order(dag.build(doc))]

    def status(self) -> dict[str, HealthReport]:
        return compute_health(self.load(), self._vc)

    def suggest_pr(self, name: str) -> PRSuggestion | None:
        return contract_ops.build_pr_suggestion(self.load(), name)

    def plan_import(self, include: str | None = None) -> ImportPlan:
        """Infer records for branches version control knows but the registry does not."""
        if self._vc is None:
            return ImportPlan()
        return infer(
            self.load(),
            self._vc.tracking_branches(),
            upstream_glob=self._config.upstream_glob,
            include=include,
        )

    def import_prompt(self, plan: ImportPlan) -> ImportPrompt:
        return contract_ops.build_import_prompt(plan, self._specs)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self,
        name: str,
        base: str | None = None,
        *,
        spec_id: str | None = None,
        base_tip: str | None = None,
    ) -> Branch:
        """Track *name* stacked on *base* (the trunk when omitted).

        *base_tip* defaults to the base's current tip as reported by version
        control, when available.
        """
        if base is None:
            base = self.load().trunk
        if base_tip is None:
            base_tip = self._tip_of(base)
        result = write_with_retry(
            self._store,
            lambda doc: branch_ops.create_branch(
                doc, name, base, spec_id=spec_id, base_tip=base_tip
            ),
            max_attempts=self._config.max_write_attempts,
        )
        logger.info("Created branch '%s' on '%s'", name, base)
        return result.document.branches[name]

    def update(
        self,
        name: str,
        *,
        base: str | None = None,
        status: BranchStatus | None = None,
        pr_number: int | None = None,
        spec_id: str | None = None,
        base_tip: str | None = None,
    ) -> Branch:
        """Change fields of a tracked branch.  Unchanged fields are left alone.

        Naming a *base* without *base_tip* records the base's current tip
        from version control, so re-basing and recording happen together.
        """
        if base is not None and base_tip is None:
            base_tip = self._tip_of(base)
        kwargs: dict[str, object] = {
            "base": base,
            "status": status,
            "pr_number": pr_number,
            "spec_id": spec_id,
        }
        if base_tip is not None:
            kwargs["base_tip"] = base_tip
        result = write_with_retry(
            self._store,
            lambda doc: branch_ops.update_branch(doc, name, **kwargs),
            max_attempts=self._config.max_write_attempts,
        )
        if result.written:
            logger.info("Updated branch '%s'", name)
        return result.document.branches[name]

    def reopen(self, name: str) -> Branch:
        result = write_with_retry(
            self._store,
            lambda doc: branch_ops.reopen_branch(doc, name),
            max_attempts=self._config.max_write_attempts,
        )
        logger.info("Reopened branch '%s'", name)
        return result.document.branches[name]

    def import_branches(
        self, plan: ImportPlan, selections: Mapping[str, str | None]
    ) -> list[Branch]:
        """Persist the selected planned branches; returns the newly added records."""
        tips = {b.base_name: self._tip_of(b.base_name) for b in plan.branches}
        result = write_with_retry(
            self._store,
            lambda doc: apply_import(doc, plan, selections, base_tips=tips),
            max_attempts=self._config.max_write_attempts,
        )
        if not result.written:
            return []
        added = [
            result.document.branches[b.name]
            for b in plan.branches
            if b.name in selections and b.name in result.document
        ]
        logger.info("Imported %d branch(es)", len(added))
        return added

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _tip_of(self, name: str) -> str | None:
        if self._vc is None:
            return None
        try:
            facts = self._vc.branch_facts(name)
        except VersionControlQueryError as e:
            logger.warning("Could not read tip of '%s': %s", name, e)
            return None
        return facts.tip if facts is not None else None

    def __repr__(self) -> str:
        where = self._paths.registry if self._paths else self._store
        return f"<Stack {where}>"
