from .step_10_check_environment import CheckEnvironmentStep
from .step_20_ensure_dependencies import EnsureDependenciesStep
from .step_30_remove_paths import RemovePathsStep
from .step_40_install_files import InstallFilesStep

__all__ = [
    "CheckEnvironmentStep",
    "EnsureDependenciesStep",
    "RemovePathsStep",
    "InstallFilesStep",
]
