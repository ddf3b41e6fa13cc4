"""Core functionality for Past Forward.

This module provides the core components for generating a person's photo
through the decades and collecting the results into an album:

- **PastForwardConfig / config**: Configuration management using Pydantic Settings
- **Catalog**: The fixed, ordered list of decades for one run
- **Generator clients**: Gemini and offline dry-run image generators
- **ResultStore**: Per-decade status, payloads, and caption overrides
- **WorkScheduler**: Bounded-concurrency worker pool over the catalog
- **compose_album**: Deterministic album compositor
- **PastForwardSession**: One "new photo" cycle tying the above together

Architecture Overview
---------------------
The core module follows a layered architecture:

1. **Configuration Layer** (config.py, catalog.py):
   - Environment-based configuration, PASTFORWARD_ prefix
   - Decade catalog built once from configuration

2. **Generation Layer** (generator_client.py, prompt_builder.py, scheduler.py):
   - Opaque async generator boundary
   - Fixed decade prompt template
   - K workers draining a shared FIFO queue

3. **State Layer** (result_store.py):
   - Whole-entry transitions published to observers
   - Generation counter that discards stale completions after a reset

4. **Output Layer** (album.py, exports.py, images.py):
   - Album layout plan and Pillow renderer
   - Download filenames and share bundles

Usage Example
-------------
    import asyncio

    from pastforward.core import PastForwardSession, build_generator_client, config

    session = PastForwardSession(config, build_generator_client(config))
    session.upload_photo(photo_data_url)
    asyncio.run(session.generate_all())
    album = asyncio.run(session.build_album())
"""

from pastforward.core.album import compose_album, plan_album
from pastforward.core.catalog import Catalog, Decade
from pastforward.core.config import PastForwardConfig, config
from pastforward.core.generator_client import (
    DryRunGeneratorClient,
    GeminiGeneratorClient,
    GeneratorClient,
    build_generator_client,
)
from pastforward.core.result_store import ResultEntry, ResultStore, Status
from pastforward.core.scheduler import WorkScheduler
from pastforward.core.session import PastForwardSession

__all__ = [
    "Catalog",
    "Decade",
    "DryRunGeneratorClient",
    "GeminiGeneratorClient",
    "GeneratorClient",
    "PastForwardConfig",
    "PastForwardSession",
    "ResultEntry",
    "ResultStore",
    "Status",
    "WorkScheduler",
    "build_generator_client",
    "compose_album",
    "config",
    "plan_album",
]
