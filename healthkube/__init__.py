"""healthkube: keep Healthchecks monitors in sync with Kubernetes CronJobs.

Having this file ensures the package is recognized during test discovery
and exposes the version used by the CLI.
"""

__version__ = "0.3.0"

__all__: list[str] = ["__version__"]
