"""
confcheck - Policy checks for structured configuration files.

confcheck evaluates rule modules against decoded configuration documents
(Kubernetes manifests, CI configs, anything YAML or JSON) and classifies
every outcome as a success, failure, warning or exception.

Rule severity comes from the rule name:
- deny / deny_* / violation / violation_*: failures
- warn / warn_*: warnings
- exception: names rules to except for a document

Example usage:
    $ confcheck test deployment.yaml --policy policy/
    $ confcheck test manifests/ --ignore "vendor/" --fail-on-warn
"""

__version__ = "0.1.0"
__author__ = "confcheck Contributors"

__all__ = [
    "__version__",
    "__author__",
]
