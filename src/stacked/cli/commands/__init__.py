"""CLI subcommands for stacked."""
