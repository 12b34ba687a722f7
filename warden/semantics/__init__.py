"""Declaration AST, its builder and the semantic passes."""
