from __future__ import annotations

from typing import Any, Dict

from ..context import ProvisioningContext
from ..lib.content import remove_content
from ..plan import ProvisionPlan
from ..state_store import record_decision


class RemovePathsStep:
    step_id = "30_remove_paths"

    def __init__(self, ctx: ProvisioningContext, plan: ProvisionPlan) -> None:
        self.ctx = ctx
        self.plan = plan

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        outcomes: Dict[str, str] = {}
        for spec in self.plan.removals:
            outcomes[spec.destination] = remove_content(spec, dry_run=self.ctx.dry_run).value
        record_decision(state, self.step_id, outcomes)
        return state
