from opencode_sidecar.app.bootstrap import build_context
from opencode_sidecar.app.runtime import SidecarContext, run_sidecar

__all__ = ["SidecarContext", "build_context", "run_sidecar"]
