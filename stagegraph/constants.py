"""Default values shared across stagegraph."""

DEFAULT_PRIMARY_SPACING = 300.0
DEFAULT_SECONDARY_SPACING = 150.0
DEFAULT_FAN_OUT_PRIMARY = 0.0

NODE_KIND = "workflowStep"
DEFAULT_CONFIG_FILE = "config.yaml"
