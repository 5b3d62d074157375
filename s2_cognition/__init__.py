"""S2 Cognition Diagnostic: three timed subtests, one persisted result per run."""
