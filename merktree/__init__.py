"""AVL tree with Merkle hashes: batch updates, commit and pruning, node encoding."""

__version__ = "0.1.0"