#!/usr/bin/env python3
"""
Index Rebuild Utility
Drops the vector index and re-embeds every markdown note in the workspace.
Deleted documents keep their index slots until a rebuild reclaims them.
Text indexed directly (not from a workspace note) is not restored.
"""

import argparse
import os
import sys

from memguard.core.config import MemoryGuardianConfig
from memguard.core.engine import create_engine
from memguard.core.errors import MemoryEngineError
from memguard.util.logging import logger


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Rebuild the memory guardian vector index")
    parser.add_argument("--workspace", help="Workspace directory (defaults to MG_WORKSPACE_DIR)")
    parser.add_argument("--provider", help="Embedding provider (defaults to MG_EMBED_PROVIDER)")
    parser.add_argument("--verbose", action="store_true", help="Log every task event")
    return parser.parse_args(argv)


def main(argv=None):
    """Rebuild the vector index from the workspace memory notes."""
    args = parse_args(argv)
    if args.verbose:
        logger.set_debug(True)

    config = MemoryGuardianConfig.from_env()
    if args.workspace:
        config.workspace_dir = os.path.abspath(args.workspace)
    if args.provider:
        config.embed_provider = args.provider

    print("Starting vector index rebuild...")

    try:
        engine = create_engine(config)
        engine.initialize()
    except (MemoryEngineError, ValueError) as e:
        print(f"ERROR: Memory engine not available: {e}")
        sys.exit(1)

    previous = engine.store.index_size
    print(f"Existing index holds {previous} slots ({engine.store.get_document_count()} live documents)")

    try:
        result = engine.rebuild()
        print(f"✓ Re-embedded {result['indexed']} notes from {config.memory_dir}")
        if result["errors"]:
            print(f"WARNING: {result['errors']} notes could not be read")
        print(f"✓ Index now holds {engine.store.get_document_count()} documents")
    finally:
        engine.shutdown()

    print("Index rebuild complete!")
    return result


if __name__ == "__main__":
    main()
