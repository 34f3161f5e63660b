"""
cap-deploy deploys the AMS policies and HANA schema of a CAP application to
Kubernetes by running the vendor deployer tools as Jobs.
"""

__all__ = [
    "binding",
    "config",
    "deployer",
    "exceptions",
    "image",
    "kubectl",
    "manifest",
    "render",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
