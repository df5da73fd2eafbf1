"""twin-e2e: end-to-end test tooling for the Twin service browse and call APIs."""

__version__ = "0.1.0"
