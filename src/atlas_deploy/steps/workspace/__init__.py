"""Steps que atuam sobre o Workspace da run."""
