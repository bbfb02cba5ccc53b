"""Cluster-facing infrastructure: Kubernetes controllers and constants."""
