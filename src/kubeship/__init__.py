"""kubeship - reconcile, roll out and tear down a stateless web application on Kubernetes."""

__version__ = "0.1.0"
