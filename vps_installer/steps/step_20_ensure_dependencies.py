from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import ProvisioningContext
from ..lib.deps import bootstrap
from ..plan import ProvisionPlan
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class EnsureDependenciesStep:
    step_id = "20_ensure_dependencies"

    def __init__(self, ctx: ProvisioningContext, plan: ProvisionPlan) -> None:
        self.ctx = ctx
        self.plan = plan

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        required = self.plan.dependencies
        if not required:
            logger.info("No command dependencies declared")
            record_decision(state, self.step_id, {"missing": [], "installed_packages": []})
            return state

        result = bootstrap(required, self.ctx.package_manager, dry_run=self.ctx.dry_run)
        record_decision(
            state,
            self.step_id,
            {
                "missing": [d.command for d in result.missing],
                "installed_packages": result.installed_packages,
            },
        )
        return state
