"""Plan generation: linearization, per-constraint emitters and init strategies."""
