"""Release lifecycle: preflight, forward path, changelog, phases, rollback."""

from relctl.services.release.errors import ReleaseError
from relctl.services.release.model import ReleasePhase, ReleaseVersion, RunOptions

__all__ = ["ReleaseError", "ReleasePhase", "ReleaseVersion", "RunOptions"]
