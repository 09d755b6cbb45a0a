from __future__ import annotations

import logging
from typing import Any, Dict

from ..context import ProvisioningContext, check_permission
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class CheckEnvironmentStep:
    step_id = "10_check_environment"

    def __init__(self, ctx: ProvisioningContext) -> None:
        self.ctx = ctx

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        check_permission(dry_run=self.ctx.dry_run)

        info = self.ctx.os_info
        record_decision(
            state,
            self.step_id,
            {
                "system": info.label,
                "codename": info.codename,
                "package_manager": list(info.package_manager),
            },
        )
        logger.info("Package manager: %s", " ".join(info.package_manager))
        return state
