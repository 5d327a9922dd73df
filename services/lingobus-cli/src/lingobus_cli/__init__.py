"""lingobus-cli: Command-line entry point for lingobus pipelines."""
