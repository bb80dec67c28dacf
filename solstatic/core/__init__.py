"""Analysis core: trees, target maps, CFGs, dependency graphs and the target pool."""
