"""Pure operations over registry snapshots: graph, mutations, health, import, contracts."""
