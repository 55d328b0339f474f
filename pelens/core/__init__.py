"""PELens core: result models, error taxonomy and the analysis engine."""
