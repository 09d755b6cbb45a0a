"""VPS installer (Python-first, plan-driven).

Core design goals:
- Idempotent file installation with `.bak` preservation
- Batched dependency reconciliation (one package-manager call per pass)
- Explicit provisioning context instead of process-wide globals
- Resumable steps
- Centralized logging
"""

__all__ = []
