"""canaryforge: gated container releases with canary/stable GitOps promotion.

For each commit canaryforge:
  - skips the run when only excluded paths (its own manifests) changed
  - runs quality and security gates, blocking on the hard ones
  - builds and publishes one image per component, tagged with the build id
  - promotes the previous canary to stable and the new image to canary
  - commits the manifests to the GitOps configuration repository
  - reports the outcome exactly once
"""

__version__ = "0.1.0"
__description__ = "Gated container builds with two-tier canary/stable GitOps promotion"

from canaryforge.core.orchestrator import ReleasePipeline
from canaryforge.cli.app import app as cli

__all__ = ["ReleasePipeline", "cli", "__version__"]
