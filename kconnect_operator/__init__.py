"""Reconcilers, resource types, manifest builders and a Kafka Connect REST client for running Kafka Connect on Kubernetes."""

__version__ = "0.1.0"