"""
Default settings for tfdrift.

These are the default values used when no user configuration exists.
"""

DEFAULT_SETTINGS = {
    "version": "1.0.0",

    # IaC tool detection (probe order: first hit wins)
    "tool": {
        "preference": ["tofu", "terraform"],
        "probe_timeout": 5,
    },

    # HCL -> JSON conversion
    "hcl": {
        "converter_binary": "hcl2json",
        "converter_timeout": 10,
        "python_hcl2_fallback": True,
    },

    # Configuration discovery
    "scan": {
        "extensions": [".tf", ".tfvars", ".hcl"],
        "exclude_dirs": [".terraform", "node_modules", "vendor"],
    },

    "workspace": {
        "command_timeout": 15,
    },

    # Drift detection (seconds)
    "drift": {
        "cache_ttl": 300,
        "error_cache_ttl": 300,
        "select_timeout": 10,
        "plan_timeout": 60,
        "stop_on_select_failure": False,
    },

    "logging": {
        "level": "INFO",
        "log_file": False,
    },
}
