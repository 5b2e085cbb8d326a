"""Pure pipeline core: predicates, WorkMap, gate, cache, and orchestrator."""
