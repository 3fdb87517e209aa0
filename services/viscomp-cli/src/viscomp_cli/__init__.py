"""viscomp-cli: command-line driver for the visual compiler pipeline."""
