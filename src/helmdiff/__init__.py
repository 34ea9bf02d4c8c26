"""
Show what a `helm upgrade` would change by diffing the manifests of the deployed release against a dry-run of the
upgrade.
"""

__version__ = "0.1.0"
