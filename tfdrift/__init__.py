"""
tfdrift - Terraform/OpenTofu configuration analysis and drift detection.
"""

__version__ = "1.0.0"
