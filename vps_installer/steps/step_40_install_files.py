from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import ProvisioningContext
from ..lib.content import InstallOutcome, install_content
from ..plan import ProvisionPlan
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class InstallFilesStep:
    step_id = "40_install_files"

    def __init__(self, ctx: ProvisioningContext, plan: ProvisionPlan) -> None:
        self.ctx = ctx
        self.plan = plan

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        outcomes: Dict[str, str] = {}
        kept = []
        for spec in self.plan.files:
            outcome = install_content(spec, staging_dir=self.ctx.temp_dir, dry_run=self.ctx.dry_run)
            outcomes[spec.destination] = outcome.value
            if outcome is InstallOutcome.INSTALLED_WITH_BACKUP_KEPT:
                kept.append(spec.backup_path)

        record_decision(state, self.step_id, outcomes)
        if kept:
            logger.warning("Previous content preserved in: %s", ", ".join(kept))
        return state
