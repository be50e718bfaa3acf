from __future__ import annotations

# GH / API operations
GH_TIMEOUT_SECONDS = 60.0

# Idempotent GH read retry policy
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0

# docker ps / inspect
DOCKER_TIMEOUT_SECONDS = 30.0

# uv lock inside the dev container (resolves the full dependency graph)
LOCK_TIMEOUT_SECONDS = 10 * 60.0

# markdownlint in a throwaway node container (first run pulls the image)
LINT_TIMEOUT_SECONDS = 5 * 60.0
