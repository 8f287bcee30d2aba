"""Machine boot configuration."""

from clusteroperator.cloudconfig.renderer import (
    CloudConfigRenderer,
    CoreOSCloudConfigRenderer,
    bootstrap_user_data,
)

__all__ = ["CloudConfigRenderer", "CoreOSCloudConfigRenderer", "bootstrap_user_data"]
